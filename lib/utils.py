# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application: UUID checks, pagination
# parsing, name/date formatting and storage path helpers.
# =============================================================================

import re
from datetime import datetime, time, timezone
from typing import Any, Iterable
from uuid import UUID


# The API is reachable at the root and under these aliases
API_PREFIXES = ("", "/api", "/functions/v1/api")


def strip_api_prefix(path: str) -> str:
    """
    Return the resource sub-path of a request path, without slashes.

    Example:
        strip_api_prefix("/functions/v1/api/teams/list")  # "teams/list"
    """
    normalized = "/" + path.strip("/")
    for prefix in sorted(API_PREFIXES, key=len, reverse=True):
        if prefix and (normalized == prefix or normalized.startswith(prefix + "/")):
            normalized = normalized[len(prefix):]
            break
    return normalized.strip("/")


# =============================================================================
# UUID Utilities
# =============================================================================

RE_UUID = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Args:
        value: UUID as string or UUID object

    Returns:
        String representation of the UUID
    """
    return str(value) if isinstance(value, UUID) else value


def is_uuid(value: Any) -> bool:
    """Check whether a value is a version 1-5 UUID string."""
    return isinstance(value, str) and RE_UUID.match(value.strip()) is not None


def parse_uuid_list(value: str | None) -> list[str]:
    """Split a comma-separated query value, keeping valid UUIDs only."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if is_uuid(part)]


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated query value, dropping empty entries."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def unique(values: Iterable[Any]) -> list[Any]:
    """De-duplicate while keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


# =============================================================================
# Query Parameter Parsing
# =============================================================================

def parse_int(value: str | int | None, default: int | None = None) -> int | None:
    """Parse an integer query value, falling back to default when unparseable."""
    if value is None:
        return default
    if isinstance(value, int):
        return value
    match = re.match(r"^\s*([+-]?\d+)", value)
    return int(match.group(1)) if match else default


def parse_pagination(
    limit: str | int | None,
    offset: str | int | None,
    default_limit: int,
    max_limit: int = 200,
) -> tuple[int, int]:
    """
    Parse and clamp limit/offset query values.

    Returns:
        (limit, offset) with limit in [1, max_limit] and offset >= 0
    """
    parsed_limit = parse_int(limit, default_limit)
    parsed_offset = parse_int(offset, 0)
    return min(max(parsed_limit, 1), max_limit), max(parsed_offset, 0)


def clean_str(value: str | None) -> str | None:
    """Trim a query value; blank values become None."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


# =============================================================================
# Names and Dates
# =============================================================================

def join_name(*parts: str | None) -> str:
    """Join name parts with single spaces, skipping blanks."""
    return " ".join(part.strip() for part in parts if part and part.strip())


DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp (a trailing Z is accepted) into an aware datetime."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_date_input(value: str, boundary: str) -> str | None:
    """
    Normalize a date filter to an ISO timestamp.

    A bare YYYY-MM-DD value expands to the first ("start") or last ("end")
    instant of that UTC day. Returns None when the value can't be parsed.
    """
    text = value.strip()
    if not text:
        return None

    if DATE_ONLY_RE.match(text):
        try:
            day = datetime.strptime(text, "%Y-%m-%d").date()
        except ValueError:
            return None
        bound = time.min if boundary == "start" else time(23, 59, 59, 999000)
        parsed = datetime.combine(day, bound, tzinfo=timezone.utc)
    else:
        parsed = parse_timestamp(text)
        if parsed is None:
            return None

    return parsed.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_evaluation_date(value: str | None) -> str | None:
    """
    Format a timestamp for evaluation listings.

    Example:
        format_evaluation_date("2025-01-05T15:07:00Z")  # "JAN 5, 2025 AT 3:07 PM"
    """
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    parsed = parsed.astimezone(timezone.utc)
    hour = parsed.hour % 12 or 12
    period = "AM" if parsed.hour < 12 else "PM"
    month = parsed.strftime("%b").upper()
    return f"{month} {parsed.day}, {parsed.year} AT {hour}:{parsed.minute:02d} {period}"


# =============================================================================
# Storage Paths
# =============================================================================

CONTENT_TYPE_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
    "video/ogg": ".ogv",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}

_EXTENSION_RE = re.compile(r"\.([a-z0-9]{1,10})$", re.IGNORECASE)
_STORAGE_URL_RE = re.compile(r"/storage/v1/object/(?:public/|sign/)?([^/]+)/(.+)$")


def sanitize_file_name(name: str) -> str:
    """Keep the base name and replace anything outside [a-zA-Z0-9._-] with underscores."""
    base = re.split(r"[\\/]", name.strip())[-1]
    return re.sub(r"[^a-zA-Z0-9._-]", "_", base) or "upload"


def file_extension(file_name: str, content_type: str | None = None) -> str:
    """
    Pick an object extension from the file name, then the content type.

    Falls back to ".bin" when neither is recognisable.
    """
    match = _EXTENSION_RE.search(sanitize_file_name(file_name))
    if match:
        return f".{match.group(1).lower()}"
    if content_type:
        mapped = CONTENT_TYPE_EXTENSIONS.get(content_type.split(";")[0].strip().lower())
        if mapped:
            return mapped
    return ".bin"


def parse_storage_object_url(url: str | None) -> tuple[str, str] | None:
    """
    Extract (bucket, path) from a Supabase storage object URL.

    Handles /storage/v1/object/<bucket>/<path> as well as the public/ and
    sign/ variants. Query strings are ignored. Returns None for other URLs.
    """
    if not url:
        return None
    without_query = url.split("?", 1)[0]
    match = _STORAGE_URL_RE.search(without_query)
    if not match:
        return None
    return match.group(1), match.group(2)

# =============================================================================
# core/models/common.py - Shared Field Types
# =============================================================================
# Reusable annotated types for request schemas:
# - UUIDStr: a UUID string, reported as "<field> (UUID) is required"
# - TrimmedStr: a string with surrounding whitespace removed
# - RequiredStr: trimmed and non-empty, reported as "<field> is required"
# - UrlStr: an absolute URL, reported as "<field> must be a valid URL"
# - MediaType: the kinds of media attached to drills and skills
# =============================================================================

from enum import Enum
from typing import Annotated, Any
from urllib.parse import urlparse

from pydantic import AfterValidator, BeforeValidator, ValidationInfo

from lib.utils import is_uuid


def _check_uuid(value: str, info: ValidationInfo) -> str:
    if not is_uuid(value):
        raise ValueError(f"{info.field_name or 'id'} (UUID) is required")
    return value.strip()


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _check_required(value: str, info: ValidationInfo) -> str:
    if not value:
        raise ValueError(f"{info.field_name or 'value'} is required")
    return value


def _check_url(value: str, info: ValidationInfo) -> str:
    parsed = urlparse(value.strip())
    if not parsed.scheme or not (parsed.netloc or parsed.path):
        raise ValueError(f"{info.field_name or 'url'} must be a valid URL")
    return value.strip()


UUIDStr = Annotated[str, AfterValidator(_check_uuid)]

UrlStr = Annotated[str, AfterValidator(_check_url)]

# Empty strings are treated as "not provided" for optional identifiers
OptionalUUIDStr = Annotated[UUIDStr | None, BeforeValidator(_blank_to_none)]

TrimmedStr = Annotated[str, BeforeValidator(_strip)]

# Trimmed, non-empty; reported as "<field> is required"
RequiredStr = Annotated[str, BeforeValidator(_strip), AfterValidator(_check_required)]


class MediaType(str, Enum):
    """Kinds of media attached to drills and skills."""
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    LINK = "link"


# Upload content-type prefix each media type accepts
UPLOAD_CONTENT_TYPE_PREFIXES = {
    MediaType.VIDEO: "video/",
    MediaType.IMAGE: "image/",
    MediaType.DOCUMENT: "application/",
}


def upload_content_type_matches(media_type: MediaType, content_type: str) -> bool:
    """Check an upload's content type against its media type (links never match)."""
    prefix = UPLOAD_CONTENT_TYPE_PREFIXES.get(media_type)
    return bool(prefix) and content_type.strip().lower().startswith(prefix)

# =============================================================================
# tests/test_utils.py - Helper Function Tests
# =============================================================================
# Tests for lib/utils.py and the storage path helpers.
# =============================================================================

import pytest

from app.exceptions import BadRequestError
from core.models.common import MediaType
from core.services.storage_service import (
    StorageService,
    build_media_path,
    check_upload_type,
    clamp_expires_in,
)
from lib.utils import (
    file_extension,
    format_evaluation_date,
    is_uuid,
    normalize_date_input,
    parse_csv,
    parse_int,
    parse_pagination,
    parse_storage_object_url,
    parse_uuid_list,
    sanitize_file_name,
    strip_api_prefix,
    unique,
)
from tests.conftest import DRILL_ID, ORG_ID
from tests.fakes import STORAGE_BASE


# =============================================================================
# Paths and Identifiers
# =============================================================================

class TestStripApiPrefix:
    @pytest.mark.parametrize("path,expected", [
        ("/teams/list", "teams/list"),
        ("/api/teams/list", "teams/list"),
        ("/functions/v1/api/teams/list/", "teams/list"),
        ("/api", ""),
        ("/apiary/x", "apiary/x"),
    ])
    def test_prefixes(self, path, expected):
        assert strip_api_prefix(path) == expected


class TestUuidHelpers:
    def test_is_uuid(self):
        assert is_uuid(ORG_ID) is True
        assert is_uuid(f"  {ORG_ID.upper()} ") is True
        assert is_uuid("not-a-uuid") is False
        assert is_uuid(None) is False

    def test_version_nibble_checked(self):
        assert is_uuid("00000000-0000-0000-0000-000000000000") is False

    def test_parse_uuid_list_drops_invalid(self):
        assert parse_uuid_list(f"{ORG_ID}, nope ,{DRILL_ID}") == [ORG_ID, DRILL_ID]

    def test_parse_csv(self):
        assert parse_csv("a, ,b,") == ["a", "b"]
        assert parse_csv(None) == []

    def test_unique_keeps_order(self):
        assert unique(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


# =============================================================================
# Query Parsing
# =============================================================================

class TestParseInt:
    def test_leading_integer(self):
        assert parse_int("12abc") == 12

    def test_signed(self):
        assert parse_int(" -3") == -3

    def test_garbage_uses_default(self):
        assert parse_int("abc", 7) == 7
        assert parse_int(None, 7) == 7


class TestParsePagination:
    """Tests for parse_pagination clamping."""

    def test_defaults(self):
        assert parse_pagination(None, None, 50) == (50, 0)

    def test_limit_clamped(self):
        assert parse_pagination("0", "5", 50) == (1, 5)
        assert parse_pagination("1000", None, 50) == (200, 0)
        assert parse_pagination("1000", None, 100, max_limit=500) == (500, 0)

    def test_negative_offset(self):
        assert parse_pagination("10", "-4", 50) == (10, 0)

    def test_unparseable_values(self):
        assert parse_pagination("many", "later", 20) == (20, 0)


# =============================================================================
# Dates
# =============================================================================

class TestNormalizeDateInput:
    def test_day_start(self):
        assert normalize_date_input("2025-03-01", "start") == "2025-03-01T00:00:00.000Z"

    def test_day_end(self):
        assert normalize_date_input("2025-03-01", "end") == "2025-03-01T23:59:59.999Z"

    def test_timestamp_converted_to_utc(self):
        assert normalize_date_input("2025-03-01T10:00:00+02:00", "start") == "2025-03-01T08:00:00.000Z"

    def test_invalid(self):
        assert normalize_date_input("2025-02-30", "start") is None
        assert normalize_date_input("soon", "end") is None


class TestFormatEvaluationDate:
    def test_afternoon(self):
        assert format_evaluation_date("2025-01-05T15:07:00Z") == "JAN 5, 2025 AT 3:07 PM"

    def test_midnight(self):
        assert format_evaluation_date("2025-12-31T00:30:00+00:00") == "DEC 31, 2025 AT 12:30 AM"

    def test_unparseable(self):
        assert format_evaluation_date("yesterday") is None
        assert format_evaluation_date(None) is None


# =============================================================================
# Storage Helpers
# =============================================================================

class TestFileNames:
    def test_sanitize(self):
        assert sanitize_file_name("C:\\clips\\my clip (1).mp4") == "my_clip__1_.mp4"

    def test_extension_from_name(self):
        assert file_extension("clip.MP4") == ".mp4"

    def test_extension_from_content_type(self):
        assert file_extension("clip", "video/quicktime; codecs=x") == ".mov"

    def test_extension_fallback(self):
        assert file_extension("clip", "application/x-unknown") == ".bin"


class TestBuildMediaPath:
    def test_layout(self):
        # Act
        path = build_media_path(ORG_ID, "drills", DRILL_ID, "Clip.MP4", "video/mp4")

        # Assert
        prefix = f"orgs/{ORG_ID}/drills/{DRILL_ID}/"
        assert path.startswith(prefix)
        assert path.endswith(".mp4")
        assert is_uuid(path[len(prefix):-len(".mp4")])

    def test_unique_per_call(self):
        first = build_media_path(ORG_ID, "skills", DRILL_ID, "a.png", "image/png")
        second = build_media_path(ORG_ID, "skills", DRILL_ID, "a.png", "image/png")
        assert first != second


class TestCheckUploadType:
    def test_matching_type(self):
        check_upload_type(MediaType.VIDEO, "video/mp4")

    def test_mismatch(self):
        with pytest.raises(BadRequestError, match="content_type does not match media type 'image'"):
            check_upload_type(MediaType.IMAGE, "video/mp4")

    def test_links_cannot_upload(self):
        with pytest.raises(BadRequestError, match="type=link does not support uploads"):
            check_upload_type(MediaType.LINK, "text/html")


class TestClampExpiresIn:
    def test_default(self):
        assert clamp_expires_in(None) == 3600

    def test_bounds(self):
        assert clamp_expires_in(5) == 60
        assert clamp_expires_in(10 ** 6) == 86400
        assert clamp_expires_in(900) == 900


class TestStorageRefs:
    """Tests for parse_storage_object_url and resolve_storage_ref."""

    def test_parse_public_url(self):
        url = f"{STORAGE_BASE}/public/drill-media/orgs/a/b.mp4?download=1"
        assert parse_storage_object_url(url) == ("drill-media", "orgs/a/b.mp4")

    def test_parse_signed_url(self):
        url = f"{STORAGE_BASE}/sign/skill-media/x/y.png?token=t"
        assert parse_storage_object_url(url) == ("skill-media", "x/y.png")

    def test_parse_foreign_url(self):
        assert parse_storage_object_url("https://youtube.com/watch?v=1") is None

    def test_storage_path_with_bucket_prefix(self):
        ref = StorageService.resolve_storage_ref("/drill-media/orgs/a/b.mp4", None, "drill-media")
        assert ref == ("drill-media", "orgs/a/b.mp4")

    def test_bare_storage_path(self):
        assert StorageService.resolve_storage_ref("orgs/a/b.mp4", None, "skill-media") == ("skill-media", "orgs/a/b.mp4")

    def test_storage_path_wins_over_url(self):
        ref = StorageService.resolve_storage_ref("orgs/a.mp4", f"{STORAGE_BASE}/public/other/z.mp4", "skill-media")
        assert ref == ("skill-media", "orgs/a.mp4")

    def test_url_only_when_storage_url(self):
        assert StorageService.resolve_storage_ref(None, "https://vimeo.com/1", "skill-media") is None
        assert StorageService.resolve_storage_ref(None, f"{STORAGE_BASE}/other/z.mp4", "skill-media") == ("other", "z.mp4")

# =============================================================================
# core/services/storage_service.py - Supabase Storage Operations
# =============================================================================
# Media files never pass through the API. This service hands out signed
# upload URLs, signs playback URLs and resolves public URLs for drill and
# skill media stored in Supabase Storage.
#
# Object layout:
#   orgs/{org_id}/drills/{drill_id}/{uuid}{ext}
#   orgs/{org_id}/skills/{skill_id}/{uuid}{ext}
# =============================================================================

import logging
import uuid
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError, error_message
from lib.utils import file_extension, parse_storage_object_url, sanitize_file_name
from app.config import settings
from core.models.common import MediaType, upload_content_type_matches
from app.exceptions import BadRequestError

logger = logging.getLogger(__name__)


class StorageUploadError(SupabaseClientError):
    """Raised when a signed upload URL can't be issued."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Failed to create signed upload URL: {message}",
            code="STORAGE_UPLOAD_FAILED",
        )


class StorageSignError(SupabaseClientError):
    """Raised when a signed download URL can't be issued."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Failed to create signed URL: {message}",
            code="STORAGE_SIGN_FAILED",
        )


def clamp_expires_in(value: int | None) -> int:
    """Signed URL lifetime in seconds, within [60, 86400]."""
    if value is None:
        return settings.SIGNED_URL_EXPIRES_IN
    return min(max(value, 60), 86400)


def build_media_path(org_id: str, kind: str, owner_id: str, file_name: str, content_type: str) -> str:
    """
    Build an object path for a new media file.

    Example:
        build_media_path(org, "drills", drill, "clip.MP4", "video/mp4")
        # "orgs/<org>/drills/<drill>/<uuid>.mp4"
    """
    extension = file_extension(sanitize_file_name(file_name), content_type)
    return f"orgs/{org_id}/{kind}/{owner_id}/{uuid.uuid4()}{extension}"


def check_upload_type(media_type: MediaType, content_type: str) -> None:
    """
    Reject uploads whose content type doesn't fit the media type.

    Raises:
        BadRequestError: For links, or a mismatching content type
    """
    if media_type == MediaType.LINK:
        raise BadRequestError("type=link does not support uploads")
    if not upload_content_type_matches(media_type, content_type):
        raise BadRequestError(f"content_type does not match media type '{media_type.value}'")


class StorageService:
    """
    Service for Supabase Storage operations.
    """

    @staticmethod
    def create_signed_upload(bucket: str, path: str) -> dict[str, Any]:
        """
        Create a signed upload URL for a new object.

        Returns:
            {bucket, path, signed_url, token, public_url}

        Raises:
            StorageUploadError: If storage refuses the request
        """
        client = SupabaseClient.get_client()
        try:
            signed = client.storage.from_(bucket).create_signed_upload_url(path)
        except Exception as e:
            logger.error(f"Signed upload URL failed for {bucket}/{path}: {error_message(e)}")
            raise StorageUploadError(error_message(e))

        signed_url = signed.get("signed_url") or signed.get("signedUrl")
        token = signed.get("token")
        if not signed_url or not token:
            raise StorageUploadError("storage returned no URL")

        logger.info(f"Issued signed upload URL for {bucket}/{path}")
        return {
            "bucket": bucket,
            "path": path,
            "signed_url": signed_url,
            "token": token,
            "public_url": StorageService.get_public_url(bucket, path),
        }

    @staticmethod
    def create_signed_url(bucket: str, path: str, expires_in: int) -> str:
        """
        Sign an existing object for playback.

        Raises:
            StorageSignError: If storage refuses the request
        """
        client = SupabaseClient.get_client()
        try:
            signed = client.storage.from_(bucket).create_signed_url(path, expires_in)
        except Exception as e:
            logger.error(f"Signing {bucket}/{path} failed: {error_message(e)}")
            raise StorageSignError(error_message(e))

        signed_url = signed.get("signedURL") or signed.get("signedUrl") or signed.get("signed_url")
        if not signed_url:
            raise StorageSignError("storage returned no URL")
        return signed_url

    @staticmethod
    def get_public_url(bucket: str, path: str) -> str | None:
        """Public URL of an object (None for an empty bucket or path)."""
        if not bucket or not path:
            return None
        url = SupabaseClient.get_client().storage.from_(bucket).get_public_url(path)
        return url.rstrip("?") if isinstance(url, str) else None

    @staticmethod
    def resolve_storage_ref(
        storage_path: str | None,
        url: str | None,
        default_bucket: str,
    ) -> tuple[str, str] | None:
        """
        Work out which storage object a media row points at.

        A storage_path wins over the url. It may be a full storage URL, a
        path prefixed with the default bucket, or a bare object path. A url is
        only used when it is a storage object URL.

        Returns:
            (bucket, path), or None for media hosted elsewhere
        """
        storage_value = (storage_path or "").strip()
        if storage_value:
            parsed = parse_storage_object_url(storage_value)
            if parsed:
                return parsed
            normalized = storage_value.lstrip("/")
            if normalized.startswith(f"{default_bucket}/"):
                return default_bucket, normalized[len(default_bucket) + 1:]
            return default_bucket, normalized

        url_value = (url or "").strip()
        if url_value:
            return parse_storage_object_url(url_value)
        return None

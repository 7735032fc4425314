# =============================================================================
# core/models/media.py - Drill and Skill Media Schemas
# =============================================================================
# Media files are uploaded straight to Supabase Storage through a signed
# upload URL; the API only issues the URL and records the media row.
#
# Flow:
# 1. POST .../media/upload-url  -> signed upload URL + suggested media row
# 2. Client PUTs the file to the signed URL
# 3. POST .../media             -> media row attached to the drill/skill
# =============================================================================

from pydantic import AliasChoices, BaseModel, Field, model_validator

from .common import MediaType, TrimmedStr, UrlStr, UUIDStr


class _MediaDetails(BaseModel):
    title: TrimmedStr | None = Field(default=None, max_length=200)
    description: TrimmedStr | None = Field(default=None, max_length=4000)
    thumbnail_url: UrlStr | None = None
    position: int | None = Field(default=None, ge=0)


class _UploadFields(_MediaDetails):
    org_id: UUIDStr
    file_name: TrimmedStr = Field(..., min_length=1, max_length=255)
    content_type: TrimmedStr = Field(..., min_length=1, max_length=120)


class DrillMediaUploadRequest(_UploadFields):
    """Request a signed upload URL for a drill media file."""
    drill_id: UUIDStr
    type: MediaType = MediaType.VIDEO


class SkillMediaUploadRequest(_UploadFields):
    """Request a signed upload URL for a skill media file (type or media_type)."""
    skill_id: UUIDStr
    type: MediaType = Field(
        default=MediaType.VIDEO,
        validation_alias=AliasChoices("type", "media_type"),
    )


class CreateDrillMediaRequest(_MediaDetails):
    """Attach an already-hosted media URL to a drill."""
    org_id: UUIDStr
    drill_id: UUIDStr
    type: MediaType = MediaType.VIDEO
    url: UrlStr


class CreateSkillMediaRequest(_MediaDetails):
    """
    Attach media to a skill.

    Either a url or a storage_path must be given. A storage_path may carry
    the bucket prefix or be a full storage URL; it is reduced to the object
    path.
    """
    org_id: UUIDStr
    skill_id: UUIDStr
    type: MediaType = Field(
        default=MediaType.VIDEO,
        validation_alias=AliasChoices("type", "media_type"),
    )
    url: UrlStr | None = None
    storage_path: TrimmedStr | None = Field(default=None, min_length=1, max_length=1024)

    @model_validator(mode="after")
    def _require_location(self) -> "CreateSkillMediaRequest":
        if not self.url and not self.storage_path:
            raise ValueError("storage_path or url is required")
        return self

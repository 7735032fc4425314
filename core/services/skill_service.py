# =============================================================================
# core/services/skill_service.py - Skill Catalogue and Skill Media
# =============================================================================
# Skills are org-scoped. Every skill read and write is filtered by org_id,
# so a skill of another org answers "Skill not found".
#
# Skill media rows may point at a storage object (storage_path or a storage
# URL) or at an external URL. Storage objects are served through public URLs
# in listings and signed URLs for playback.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient
from app.config import settings
from core.models.media import CreateSkillMediaRequest, SkillMediaUploadRequest
from core.models.skill import CreateSkillRequest, UpdateSkillRequest
from core.services.storage_service import (
    StorageService,
    build_media_path,
    check_upload_type,
    clamp_expires_in,
)
from lib.utils import parse_storage_object_url
from app.exceptions import AnkorException, NotFoundError

logger = logging.getLogger(__name__)

SKILL_COLUMNS = (
    "id, org_id, sport_id, category, title, description, level, visibility, status, "
    "created_at, updated_at"
)
SKILL_MEDIA_COLUMNS = "id, skill_id, media_type, title, url, storage_path, thumbnail_url, sort_order"
SKILL_SELECT = f"{SKILL_COLUMNS}, skill_media({SKILL_MEDIA_COLUMNS})"


class SkillNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("Skill not found", code="SKILL_NOT_FOUND")


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def map_skill_media_row(row: dict[str, Any], skill_id: str | None = None) -> dict[str, Any]:
    """
    Map a skill_media row.

    url is the stored url, else the public URL of the storage object.
    """
    storage_path = _text(row.get("storage_path"))
    url = _text(row.get("url"))
    if url is None:
        ref = StorageService.resolve_storage_ref(storage_path, None, settings.SKILLS_MEDIA_BUCKET)
        url = StorageService.get_public_url(*ref) if ref else None

    position = row.get("sort_order")
    return {
        "id": _text(row.get("id")) or "",
        "skill_id": _text(row.get("skill_id")) or skill_id or "",
        "type": _text(row.get("media_type")) or "video",
        "url": url,
        "storage_path": storage_path,
        "title": _text(row.get("title")),
        "description": _text(row.get("description")),
        "thumbnail_url": _text(row.get("thumbnail_url")),
        "position": position if isinstance(position, int) and not isinstance(position, bool) else None,
    }


def map_skill_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map a skills row with its media sorted by position (nulls last)."""
    media = [map_skill_media_row(item, row.get("id")) for item in row.get("skill_media") or []]
    media.sort(key=lambda item: (item["position"] is None, item["position"] or 0))
    return {
        "id": row.get("id"),
        "org_id": row.get("org_id"),
        "sport_id": row.get("sport_id"),
        "category": _text(row.get("category")) or "",
        "title": _text(row.get("title")) or "",
        "description": _text(row.get("description")),
        "level": _text(row.get("level")),
        "visibility": _text(row.get("visibility")),
        "status": _text(row.get("status")),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at") or row.get("created_at"),
        "media": media,
    }


class SkillService:
    """
    Service for skill operations.
    """

    @staticmethod
    def _ensure_skill_in_org(skill_id: str, org_id: str) -> None:
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("skills").select("id").eq("id", skill_id).eq("org_id", org_id),
            action="check skill",
        )
        if not row:
            raise SkillNotFoundError()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def list_skills(
        org_id: str,
        sport_id: str | None = None,
        category: str | None = None,
        q: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """List org skills ordered by title; q matches title or category."""
        client = SupabaseClient.get_client()
        query = client.table("skills").select(SKILL_SELECT, count="exact").eq("org_id", org_id)
        if sport_id:
            query = query.eq("sport_id", sport_id)
        if category:
            query = query.eq("category", category)
        if q:
            query = query.or_(f"title.ilike.%{q}%,category.ilike.%{q}%")
        query = query.order("title").range(offset, offset + limit - 1)

        rows, count = SupabaseClient.fetch_page(query, action="list skills")
        return [map_skill_row(row) for row in rows], count

    @staticmethod
    def list_tags(
        org_id: str,
        sport_id: str | None = None,
        q: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, str]]:
        """Distinct tags attached to the org's skills, sorted by name."""
        client = SupabaseClient.get_client()
        query = (
            client.table("skill_tags")
            .select("tags!inner(id, name), skills!inner(org_id, sport_id)")
            .eq("skills.org_id", org_id)
        )
        if sport_id:
            query = query.eq("skills.sport_id", sport_id)
        if q:
            query = query.ilike("tags.name", f"%{q}%")
        query = query.range(offset, offset + limit - 1)

        tags: dict[str, dict[str, str]] = {}
        for row in SupabaseClient.fetch_all(query, action="list skill tags"):
            tag = row.get("tags") or {}
            tag_id, name = _text(tag.get("id")), _text(tag.get("name"))
            if tag_id and name and tag_id not in tags:
                tags[tag_id] = {"id": tag_id, "name": name}
        return sorted(tags.values(), key=lambda tag: tag["name"])

    @staticmethod
    def get_skill(skill_id: str, org_id: str) -> dict[str, Any]:
        """
        Get a skill with its media.

        Raises:
            SkillNotFoundError: If the skill isn't in the org
        """
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("skills").select(SKILL_SELECT).eq("id", skill_id).eq("org_id", org_id),
            action="get skill",
        )
        if not row:
            raise SkillNotFoundError()
        return map_skill_row(row)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def create_skill(request: CreateSkillRequest) -> dict[str, Any]:
        """Create a skill; unset optional fields fall back to column defaults."""
        client = SupabaseClient.get_client()
        rows = SupabaseClient.fetch_all(
            client.table("skills").insert(request.to_row()),
            action="create skill",
        )
        if not rows:
            raise AnkorException("Failed to create skill", code="SKILL_CREATE_FAILED")
        skill = map_skill_row(rows[0])

        logger.info(f"Created skill {skill['id']} in org {request.org_id}")
        return skill

    @staticmethod
    def update_skill(skill_id: str, org_id: str, request: UpdateSkillRequest) -> dict[str, Any]:
        """
        Patch a skill.

        Raises:
            SkillNotFoundError: If the skill isn't in the org
        """
        client = SupabaseClient.get_client()
        rows = SupabaseClient.fetch_all(
            client.table("skills").update(request.patch()).eq("id", skill_id).eq("org_id", org_id),
            action="update skill",
        )
        if not rows:
            raise SkillNotFoundError()

        logger.info(f"Updated skill {skill_id}")
        return SkillService.get_skill(skill_id, org_id)

    # -------------------------------------------------------------------------
    # Media
    # -------------------------------------------------------------------------

    @staticmethod
    def create_upload_url(request: SkillMediaUploadRequest) -> dict[str, Any]:
        """
        Issue a signed upload URL for a skill media file.

        Returns:
            {"upload": {bucket, path, signed_url, token, public_url}, "media": {...}}
        """
        check_upload_type(request.type, request.content_type)
        path = build_media_path(
            request.org_id, "skills", request.skill_id, request.file_name, request.content_type
        )
        upload = StorageService.create_signed_upload(settings.SKILLS_MEDIA_BUCKET, path)
        return {
            "upload": upload,
            "media": {
                "type": request.type.value,
                "storage_path": path,
                "url": upload["public_url"],
                "title": request.title,
                "description": request.description,
                "thumbnail_url": request.thumbnail_url,
                "position": request.position,
            },
        }

    @staticmethod
    def create_media(request: CreateSkillMediaRequest) -> dict[str, Any]:
        """
        Attach media to a skill.

        The position defaults to the last sort_order + 1 (or 1).

        Raises:
            SkillNotFoundError: If the skill isn't in the org
        """
        client = SupabaseClient.get_client()
        bucket = settings.SKILLS_MEDIA_BUCKET

        storage_path = request.storage_path or ""
        if storage_path:
            parsed = parse_storage_object_url(storage_path)
            if parsed:
                storage_path = parsed[1]
            elif storage_path.startswith(f"{bucket}/"):
                storage_path = storage_path[len(bucket) + 1:]
        elif request.url:
            parsed = parse_storage_object_url(request.url)
            if parsed:
                storage_path = parsed[1]

        SkillService._ensure_skill_in_org(request.skill_id, request.org_id)

        position = request.position
        if position is None:
            last = SupabaseClient.fetch_one(
                client.table("skill_media")
                .select("sort_order")
                .eq("skill_id", request.skill_id)
                .order("sort_order", desc=True)
                .limit(1),
                action="find last skill media",
            )
            last_order = (last or {}).get("sort_order")
            position = last_order + 1 if isinstance(last_order, int) else 1

        url = request.url
        if not url:
            ref = StorageService.resolve_storage_ref(storage_path, None, bucket)
            url = StorageService.get_public_url(*ref) if ref else None

        rows = SupabaseClient.fetch_all(
            client.table("skill_media").insert({
                "skill_id": request.skill_id,
                "media_type": request.type.value,
                "title": request.title,
                "url": url,
                "storage_path": storage_path or None,
                "thumbnail_url": request.thumbnail_url,
                "sort_order": position,
            }),
            action="create skill media",
        )
        media = map_skill_media_row(rows[0] if rows else {}, request.skill_id)
        logger.info(f"Attached media {media['id']} to skill {request.skill_id}")
        return media

    @staticmethod
    def get_playback(skill_id: str, org_id: str, expires_in: int | None = None) -> dict[str, Any]:
        """
        Resolve a playable URL for a skill's first video.

        Storage objects get a signed URL; external URLs are returned as-is
        with expires_in None.

        Raises:
            SkillNotFoundError: If the skill isn't in the org
            NotFoundError: "Skill media not found"
        """
        SkillService._ensure_skill_in_org(skill_id, org_id)

        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("skill_media")
            .select(SKILL_MEDIA_COLUMNS)
            .eq("skill_id", skill_id)
            .eq("media_type", "video")
            .order("sort_order")
            .limit(1),
            action="load skill video",
        )
        if not row:
            raise NotFoundError("Skill media not found", code="SKILL_MEDIA_NOT_FOUND")

        media = map_skill_media_row(row, skill_id)
        ref = StorageService.resolve_storage_ref(
            row.get("storage_path"), row.get("url"), settings.SKILLS_MEDIA_BUCKET
        )
        if ref is None:
            if not media["url"]:
                raise NotFoundError("Skill media URL missing", code="SKILL_MEDIA_NOT_FOUND")
            return {"media": media, "play_url": media["url"], "expires_in": None}

        seconds = clamp_expires_in(expires_in)
        return {
            "media": media,
            "play_url": StorageService.create_signed_url(ref[0], ref[1], seconds),
            "expires_in": seconds,
        }

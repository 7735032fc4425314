# =============================================================================
# core/services/drill_service.py - Drill Library
# =============================================================================
# Drills are org-scoped practice exercises grouped into segments. A drill
# carries ordered media (drill_media) and tags (drill_tag_map -> drill_tags).
#
# Creation goes through the rpc_create_drill stored procedure so the drill,
# its media and its tags are written in one transaction.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient
from app.config import settings
from core.models.drill import CreateDrillRequest, UpdateDrillRequest
from core.models.media import CreateDrillMediaRequest, DrillMediaUploadRequest
from core.services.storage_service import (
    StorageService,
    build_media_path,
    check_upload_type,
    clamp_expires_in,
)
from lib.utils import parse_storage_object_url
from app.exceptions import AnkorException, NotFoundError

logger = logging.getLogger(__name__)

DRILL_COLUMNS = (
    "id, org_id, segment_id, name, description, level, min_players, max_players, "
    "min_age, max_age, duration_min, visibility, is_archived, created_at, updated_at"
)
DRILL_MEDIA_COLUMNS = "id, drill_id, media_type, url, title, thumbnail_url, sort_order"
TAG_EMBED = "drill_tag_map(tag_id, drill_tags!inner(id, name))"
TAG_EMBED_INNER = "drill_tag_map!inner(tag_id, drill_tags!inner(id, name))"


def drill_select(tag_filter: bool = False) -> str:
    """
    Select string for drills with segment, media and tags.

    When filtering by tag the tag map is an inner join; otherwise drills
    without tags would drop out of the result.
    """
    tags = TAG_EMBED_INNER if tag_filter else TAG_EMBED
    return (
        f"{DRILL_COLUMNS}, segment:segments(id, name), "
        f"drill_media(id, media_type, title, url, thumbnail_url, sort_order), {tags}"
    )


class DrillNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("Drill not found", code="DRILL_NOT_FOUND")


def map_drill_media_row(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row.get("id"),
        "drill_id": row.get("drill_id"),
        "type": row.get("media_type") or "video",
        "url": row.get("url"),
        "title": row.get("title"),
        "thumbnail_url": row.get("thumbnail_url"),
        "position": row.get("sort_order"),
    }


def map_drill_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map a drills row with its embedded segment, media and tags."""
    media = [
        {
            "type": item.get("media_type") or "video",
            "url": item.get("url"),
            "title": item.get("title"),
            "description": None,
            "thumbnail_url": item.get("thumbnail_url"),
            "position": item.get("sort_order"),
        }
        for item in row.get("drill_media") or []
    ]

    skill_tags = []
    for item in row.get("drill_tag_map") or []:
        tag = (item or {}).get("drill_tags") or {}
        if tag.get("id"):
            name = tag.get("name")
            skill_tags.append({"id": tag["id"], "name": name if isinstance(name, str) else ""})

    segment = row.get("segment")
    return {
        "id": row.get("id"),
        "org_id": row.get("org_id"),
        "segment_id": row.get("segment_id"),
        "name": row.get("name"),
        "description": row.get("description"),
        "level": row.get("level"),
        "min_players": row.get("min_players"),
        "max_players": row.get("max_players"),
        "min_age": row.get("min_age"),
        "max_age": row.get("max_age"),
        "duration_min": row.get("duration_min"),
        "visibility": row.get("visibility"),
        "is_archived": row.get("is_archived") or False,
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
        "segment": {"id": segment.get("id"), "name": segment.get("name")} if segment else None,
        "skill_tags": skill_tags,
        "media": media,
    }


def _created_drill_id(data: Any) -> str | None:
    """rpc_create_drill answers with the id, a row, or a list of rows."""
    if isinstance(data, str):
        return data
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        return data.get("id") or data.get("drill_id")
    return None


class DrillService:
    """
    Service for drill operations.
    """

    @staticmethod
    def _ensure_drill_in_org(drill_id: str, org_id: str) -> None:
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("drills").select("id").eq("id", drill_id).eq("org_id", org_id),
            action="check drill",
        )
        if not row:
            raise DrillNotFoundError()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def list_drills(
        org_id: str,
        name: str | None = None,
        segment_ids: list[str] | None = None,
        skill_tag_ids: list[str] | None = None,
        levels: list[str] | None = None,
        min_age: int | None = None,
        max_age: int | None = None,
        min_players: int | None = None,
        max_players: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """
        List org drills, newest first.

        Age and player filters are bounds: min_* keeps drills whose minimum
        is at least the value, max_* those whose maximum is at most it.
        """
        client = SupabaseClient.get_client()
        query = (
            client.table("drills")
            .select(drill_select(tag_filter=bool(skill_tag_ids)), count="exact")
            .eq("org_id", org_id)
        )
        if name:
            query = query.ilike("name", f"%{name}%")
        if segment_ids:
            query = query.in_("segment_id", segment_ids)
        if levels:
            query = query.in_("level", levels)
        if min_age is not None:
            query = query.gte("min_age", min_age)
        if max_age is not None:
            query = query.lte("max_age", max_age)
        if min_players is not None:
            query = query.gte("min_players", min_players)
        if max_players is not None:
            query = query.lte("max_players", max_players)
        if skill_tag_ids:
            query = query.in_("drill_tag_map.tag_id", skill_tag_ids)

        query = query.order("created_at", desc=True).range(offset, offset + limit - 1)
        rows, count = SupabaseClient.fetch_page(query, action="list drills")
        return [map_drill_row(row) for row in rows], count

    @staticmethod
    def get_drill(drill_id: str, org_id: str) -> dict[str, Any]:
        """
        Get a drill with segment, media and tags.

        Raises:
            DrillNotFoundError: If the drill isn't in the org
        """
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("drills").select(drill_select()).eq("id", drill_id).eq("org_id", org_id),
            action="get drill",
        )
        if not row:
            raise DrillNotFoundError()
        return map_drill_row(row)

    @staticmethod
    def list_segments() -> list[dict[str, Any]]:
        client = SupabaseClient.get_client()
        rows = SupabaseClient.fetch_all(
            client.table("segments").select("id, name").order("name"),
            action="list segments",
        )
        return [{"id": row.get("id"), "name": row.get("name")} for row in rows]

    @staticmethod
    def list_tags(
        org_id: str,
        sport_id: str | None = None,
        q: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """List the org's drill tags ordered by name."""
        client = SupabaseClient.get_client()
        query = client.table("drill_tags").select("id, name", count="exact").eq("org_id", org_id)
        if sport_id:
            query = query.eq("sport_id", sport_id)
        if q and q.strip():
            query = query.ilike("name", f"%{q.strip()}%")
        query = query.order("name").range(offset, offset + limit - 1)

        rows, count = SupabaseClient.fetch_page(query, action="list drill tags")
        tags = [
            {"id": row.get("id"), "name": row.get("name") if isinstance(row.get("name"), str) else ""}
            for row in rows
        ]
        return tags, count

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def create_drill(request: CreateDrillRequest) -> dict[str, Any]:
        """
        Create a drill with its media and skill tags via rpc_create_drill.

        Returns:
            The created drill DTO
        """
        data = SupabaseClient.call_rpc("rpc_create_drill", request.rpc_params())
        drill_id = _created_drill_id(data)
        if not drill_id:
            raise AnkorException("Failed to create drill: RPC returned no data", code="DRILL_CREATE_FAILED")

        logger.info(f"Created drill {drill_id} in org {request.org_id}")
        return DrillService.get_drill(drill_id, request.org_id)

    @staticmethod
    def update_drill(drill_id: str, org_id: str, request: UpdateDrillRequest) -> dict[str, Any]:
        """
        Patch a drill and its tags.

        Tags in remove_tag_ids are deleted from drill_tag_map before the
        add_tag_ids are upserted.

        Raises:
            DrillNotFoundError: If the drill isn't in the org
        """
        client = SupabaseClient.get_client()
        patch = request.patch()
        if patch:
            rows = SupabaseClient.fetch_all(
                client.table("drills").update(patch).eq("id", drill_id).eq("org_id", org_id),
                action="update drill",
            )
            if not rows:
                raise DrillNotFoundError()
        else:
            DrillService._ensure_drill_in_org(drill_id, org_id)

        remove_ids = request.tags_to_remove()
        if remove_ids:
            SupabaseClient.execute(
                client.table("drill_tag_map")
                .delete()
                .eq("drill_id", drill_id)
                .in_("tag_id", remove_ids),
                action="remove drill tags",
            )

        add_ids = request.tags_to_add()
        if add_ids:
            SupabaseClient.execute(
                client.table("drill_tag_map").upsert(
                    [{"drill_id": drill_id, "tag_id": tag_id} for tag_id in add_ids],
                    on_conflict="drill_id,tag_id",
                ),
                action="add drill tags",
            )

        logger.info(f"Updated drill {drill_id}")
        return DrillService.get_drill(drill_id, org_id)

    # -------------------------------------------------------------------------
    # Media
    # -------------------------------------------------------------------------

    @staticmethod
    def create_upload_url(request: DrillMediaUploadRequest) -> dict[str, Any]:
        """
        Issue a signed upload URL for a drill media file.

        Returns:
            {"upload": {bucket, path, signed_url, token, public_url}, "media": {...}}
        """
        check_upload_type(request.type, request.content_type)
        path = build_media_path(
            request.org_id, "drills", request.drill_id, request.file_name, request.content_type
        )
        upload = StorageService.create_signed_upload(settings.DRILLS_MEDIA_BUCKET, path)
        return {
            "upload": upload,
            "media": {
                "type": request.type.value,
                "url": upload["public_url"],
                "title": request.title,
                "description": request.description,
                "thumbnail_url": request.thumbnail_url,
                "position": request.position,
            },
        }

    @staticmethod
    def create_media(request: CreateDrillMediaRequest) -> dict[str, Any]:
        """
        Attach a media URL to a drill.

        The position defaults to the last sort_order + 1 (or 1).

        Raises:
            DrillNotFoundError: If the drill isn't in the org
        """
        DrillService._ensure_drill_in_org(request.drill_id, request.org_id)
        client = SupabaseClient.get_client()

        position = request.position
        if position is None:
            last = SupabaseClient.fetch_one(
                client.table("drill_media")
                .select("sort_order")
                .eq("drill_id", request.drill_id)
                .order("sort_order", desc=True)
                .limit(1),
                action="find last drill media",
            )
            last_order = (last or {}).get("sort_order")
            position = last_order + 1 if isinstance(last_order, int) else 1

        rows = SupabaseClient.fetch_all(
            client.table("drill_media").insert({
                "drill_id": request.drill_id,
                "media_type": request.type.value,
                "url": request.url,
                "title": request.title,
                "thumbnail_url": request.thumbnail_url,
                "sort_order": position,
            }),
            action="create drill media",
        )
        media = map_drill_media_row(rows[0] if rows else {})
        logger.info(f"Attached media {media['id']} to drill {request.drill_id}")
        return media

    @staticmethod
    def get_playback(drill_id: str, org_id: str, expires_in: int | None = None) -> dict[str, Any]:
        """
        Resolve a playable URL for a drill's first video.

        Storage object URLs are signed; other URLs are returned as-is with
        expires_in None.

        Raises:
            DrillNotFoundError: If the drill isn't in the org
            NotFoundError: "Drill media not found"
        """
        DrillService._ensure_drill_in_org(drill_id, org_id)

        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("drill_media")
            .select(DRILL_MEDIA_COLUMNS)
            .eq("drill_id", drill_id)
            .eq("media_type", "video")
            .order("sort_order")
            .limit(1),
            action="load drill video",
        )
        if not row:
            raise NotFoundError("Drill media not found", code="DRILL_MEDIA_NOT_FOUND")

        media = map_drill_media_row(row)
        ref = parse_storage_object_url(media["url"])
        if ref is None:
            return {"media": media, "play_url": media["url"], "expires_in": None}

        seconds = clamp_expires_in(expires_in)
        return {
            "media": media,
            "play_url": StorageService.create_signed_url(ref[0], ref[1], seconds),
            "expires_in": seconds,
        }

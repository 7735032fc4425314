# =============================================================================
# app/routers/drills.py - Drill Library Endpoints
# =============================================================================
# Writes need the coach role; reads accept coaches and athletes.
# Literal routes (list, segments, tags, media/...) are registered before
# `/{id}` so they aren't captured as drill ids.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request

from app.auth.guards import org_role_guard_from_body, org_role_guard_from_query
from app.dependencies import Context, PathId, optional_uuid_param, pagination, require_uuid_param
from core.models.drill import CreateDrillRequest, UpdateDrillRequest
from core.models.media import CreateDrillMediaRequest, DrillMediaUploadRequest
from core.services.drill_service import DrillService
from lib.utils import clean_str, parse_csv, parse_int, parse_uuid_list

router = APIRouter()

read_guard = Depends(org_role_guard_from_query("org_id", ["coach", "athlete"]))
coach_query_guard = Depends(org_role_guard_from_query("org_id", ["coach"]))
coach_body_guard = Depends(org_role_guard_from_body("org_id", ["coach"]))


# =============================================================================
# Writes
# =============================================================================

@router.post("", status_code=201, dependencies=[coach_body_guard])
async def create_drill(body: CreateDrillRequest):
    """
    Create a drill with its media and skill tags.

    Media positions default to their index + 1; duplicate skill tags are
    dropped.
    """
    return {"ok": True, "drill": DrillService.create_drill(body)}


@router.post("/media/upload-url", status_code=201, dependencies=[coach_body_guard])
async def create_drill_media_upload_url(body: DrillMediaUploadRequest):
    """
    Issue a signed upload URL for a drill media file.

    The object path is orgs/{org}/drills/{drill}/{uuid}{ext}.
    """
    result = DrillService.create_upload_url(body)
    return {"ok": True, **result}


@router.post("/media", status_code=201, dependencies=[coach_body_guard])
async def create_drill_media(body: CreateDrillMediaRequest):
    """Attach a media URL to a drill."""
    return {"ok": True, "media": DrillService.create_media(body)}


# =============================================================================
# Reads
# =============================================================================

@router.get("/media/{drill_id}/play", dependencies=[read_guard])
async def play_drill_media(
    request: Request,
    ctx: Context,
    drill_id: Annotated[str, Path(description="Drill UUID")],
    expires_in: Annotated[str | None, Query(description="Signed URL lifetime in seconds")] = None,
):
    """
    Resolve a playable URL for the drill's first video.

    Storage objects are signed for expires_in seconds (default 3600,
    clamped to 60-86400); external URLs come back with expires_in null.
    """
    drill_id = require_uuid_param(request, "drill_id", drill_id)
    result = DrillService.get_playback(drill_id, ctx.org_id, parse_int(expires_in))
    return {"ok": True, **result}


@router.get("/list", dependencies=[read_guard])
async def list_drills(
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(50))],
    name: Annotated[str | None, Query()] = None,
    segment_ids: Annotated[str | None, Query(description="Comma-separated segment UUIDs")] = None,
    skill_tags: Annotated[str | None, Query(description="Comma-separated tag UUIDs")] = None,
    levels: Annotated[str | None, Query(description="Comma-separated levels")] = None,
    min_age: Annotated[str | None, Query()] = None,
    max_age: Annotated[str | None, Query()] = None,
    min_players: Annotated[str | None, Query()] = None,
    max_players: Annotated[str | None, Query()] = None,
):
    """List the org's drills, newest first."""
    limit, offset = page
    items, count = DrillService.list_drills(
        ctx.org_id,
        name=clean_str(name),
        segment_ids=parse_uuid_list(segment_ids),
        skill_tag_ids=parse_uuid_list(skill_tags),
        levels=parse_csv(levels),
        min_age=parse_int(min_age),
        max_age=parse_int(max_age),
        min_players=parse_int(min_players),
        max_players=parse_int(max_players),
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": count, "items": items}


@router.get("/segments")
async def list_segments():
    """All drill segments ordered by name."""
    items = DrillService.list_segments()
    return {"ok": True, "count": len(items), "items": items}


@router.get("/tags", dependencies=[read_guard])
async def list_drill_tags(
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(50))],
    sport_id: Annotated[str | None, Query()] = None,
    q: Annotated[str | None, Query()] = None,
):
    """List the org's drill tags ordered by name."""
    limit, offset = page
    items, count = DrillService.list_tags(
        ctx.org_id,
        sport_id=optional_uuid_param(sport_id, "sport_id"),
        q=clean_str(q),
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": count, "items": items}


@router.get("/{id}", dependencies=[read_guard])
async def get_drill(drill_id: PathId, ctx: Context):
    """Get a drill with segment, media and skill tags."""
    return {"ok": True, "drill": DrillService.get_drill(drill_id, ctx.org_id)}


@router.patch("/{id}", dependencies=[coach_query_guard])
async def update_drill(drill_id: PathId, ctx: Context, body: UpdateDrillRequest):
    """
    Patch a drill.

    add_tag_ids / remove_tag_ids change the drill's tags in the same call.
    """
    return {"ok": True, "drill": DrillService.update_drill(drill_id, ctx.org_id, body)}

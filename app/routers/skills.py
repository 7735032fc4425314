# =============================================================================
# app/routers/skills.py - Skill Catalogue Endpoints
# =============================================================================
# Reads are open to coaches, athletes and parents of the org; writes need
# the coach role. Literal routes are registered before `/{id}`.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request

from app.auth.guards import org_role_guard_from_body, org_role_guard_from_query
from app.dependencies import Context, PathId, optional_uuid_param, pagination, require_uuid_param
from core.models.media import CreateSkillMediaRequest, SkillMediaUploadRequest
from core.models.skill import CreateSkillRequest, UpdateSkillRequest
from core.services.skill_service import SkillService
from lib.utils import clean_str, parse_int

router = APIRouter()

READ_ROLES = ["coach", "athlete", "parent"]

read_guard = Depends(org_role_guard_from_query("org_id", READ_ROLES))
coach_body_guard = Depends(org_role_guard_from_body("org_id", ["coach"]))


# =============================================================================
# Listings
# =============================================================================

@router.get("/list", dependencies=[read_guard])
async def list_skills(
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(50))],
    sport_id: Annotated[str | None, Query()] = None,
    category: Annotated[str | None, Query()] = None,
    q: Annotated[str | None, Query(description="Matches title or category")] = None,
):
    """List the org's skills ordered by title."""
    limit, offset = page
    items, count = SkillService.list_skills(
        ctx.org_id,
        sport_id=optional_uuid_param(sport_id, "sport_id", "sport_id must be a UUID if provided"),
        category=clean_str(category),
        q=clean_str(q),
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": count, "items": items}


@router.get("/tags", dependencies=[read_guard])
async def list_skill_tags(
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(50))],
    sport_id: Annotated[str | None, Query()] = None,
    q: Annotated[str | None, Query()] = None,
):
    """Distinct tags attached to the org's skills."""
    limit, offset = page
    items = SkillService.list_tags(
        ctx.org_id,
        sport_id=optional_uuid_param(sport_id, "sport_id", "sport_id must be a UUID if provided"),
        q=clean_str(q),
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": len(items), "items": items}


# =============================================================================
# Writes
# =============================================================================

@router.post("", status_code=201, dependencies=[coach_body_guard])
async def create_skill(body: CreateSkillRequest):
    """Create a skill in the org."""
    return {"ok": True, "skill": SkillService.create_skill(body)}


# =============================================================================
# Media
# =============================================================================

@router.post("/media/upload-url", status_code=201, dependencies=[coach_body_guard])
async def create_skill_media_upload_url(body: SkillMediaUploadRequest):
    """
    Issue a signed upload URL for a skill media file.

    The client uploads the file to `upload.signed_url`, then records it with
    POST /skills/media using the returned `media` fields.
    """
    result = SkillService.create_upload_url(body)
    return {"ok": True, **result}


@router.post("/media", status_code=201, dependencies=[coach_body_guard])
async def create_skill_media(body: CreateSkillMediaRequest):
    """Attach media to a skill."""
    return {"ok": True, "media": SkillService.create_media(body)}


@router.get("/media/{skill_id}/play", dependencies=[read_guard])
async def play_skill_media(
    request: Request,
    ctx: Context,
    skill_id: Annotated[str, Path(description="Skill UUID")],
    expires_in: Annotated[str | None, Query(description="Signed URL lifetime in seconds")] = None,
):
    """Resolve a playable URL for the skill's first video."""
    skill_id = require_uuid_param(request, "skill_id", skill_id)
    result = SkillService.get_playback(skill_id, ctx.org_id, parse_int(expires_in))
    return {"ok": True, **result}


# =============================================================================
# Single skill
# =============================================================================

@router.get("/{id}", dependencies=[read_guard])
async def get_skill(skill_id: PathId, ctx: Context):
    """Get a skill with its media."""
    return {"ok": True, "skill": SkillService.get_skill(skill_id, ctx.org_id)}


@router.patch("/{id}", dependencies=[Depends(org_role_guard_from_query("org_id", ["coach"]))])
async def update_skill(skill_id: PathId, ctx: Context, body: UpdateSkillRequest):
    """Patch a skill; only sent fields are written."""
    return {"ok": True, "skill": SkillService.update_skill(skill_id, ctx.org_id, body)}

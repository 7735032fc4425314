# =============================================================================
# app/routers/coaches.py - Coach Endpoints
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.auth.guards import org_role_guard_from_body, org_role_guard_from_query
from app.dependencies import Context, PathId, pagination
from core.models.member import CreateCoachRequest, UpdateCoachRequest
from core.services.member_service import CoachService
from lib.utils import clean_str

router = APIRouter()

coach_query_guard = Depends(org_role_guard_from_query("org_id", ["coach"]))


@router.post("", status_code=201, dependencies=[Depends(org_role_guard_from_body("org_id", ["coach"]))])
async def create_coach(body: CreateCoachRequest):
    """Create a coach with a login in the org."""
    coach = CoachService.create(body)
    return {"ok": True, "coach": coach}


@router.get("/list", dependencies=[coach_query_guard])
async def list_coaches(
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(50))],
    name: Annotated[str | None, Query(description="Matches full, first or last name")] = None,
    email: Annotated[str | None, Query()] = None,
):
    """List the org's coaches ordered by last, then first name."""
    limit, offset = page
    items, count = CoachService.list(
        ctx.org_id,
        name=clean_str(name),
        email=clean_str(email),
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": count, "items": items}


@router.get("/{id}", dependencies=[coach_query_guard])
async def get_coach(coach_id: PathId, ctx: Context):
    return {"ok": True, "coach": CoachService.get(coach_id, ctx.org_id)}


@router.patch("/{id}", dependencies=[coach_query_guard])
async def update_coach(coach_id: PathId, ctx: Context, body: UpdateCoachRequest):
    return {"ok": True, "coach": CoachService.update(coach_id, ctx.org_id, body)}

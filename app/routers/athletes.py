# =============================================================================
# app/routers/athletes.py - Athlete Endpoints
# =============================================================================
# Coach-only athlete management. Creating an athlete also creates (or links)
# the guardian's login.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.auth.guards import org_role_guard_from_body, org_role_guard_from_query
from app.dependencies import Context, PathId, optional_uuid_param, pagination
from core.models.member import CreateAthleteRequest, UpdateAthleteRequest
from core.services.member_service import AthleteService
from lib.utils import clean_str

router = APIRouter()

coach_query_guard = Depends(org_role_guard_from_query("org_id", ["coach"]))


@router.post("", status_code=201, dependencies=[Depends(org_role_guard_from_body("org_id", ["coach"]))])
async def create_athlete(body: CreateAthleteRequest):
    """
    Create an athlete with a login and a guardian contact.

    If the guardian email is new to the org, a parent login is created too
    (or the athlete's own login is reused when the emails match).
    """
    athlete = AthleteService.create(body)
    return {"ok": True, "athlete": athlete}


@router.get("/list", dependencies=[coach_query_guard])
async def list_athletes(
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(50))],
    name: Annotated[str | None, Query(description="Matches full, first or last name")] = None,
    email: Annotated[str | None, Query()] = None,
    team_id: Annotated[str | None, Query(description="Active members of this team")] = None,
):
    """List the org's athletes ordered by last, then first name."""
    limit, offset = page
    items, count = AthleteService.list(
        ctx.org_id,
        name=clean_str(name),
        email=clean_str(email),
        team_id=optional_uuid_param(team_id, "team_id"),
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": count, "items": items}


@router.get("/{id}", dependencies=[coach_query_guard])
async def get_athlete(athlete_id: PathId, ctx: Context):
    """Get an athlete with teams and guardian."""
    return {"ok": True, "athlete": AthleteService.get(athlete_id, ctx.org_id)}


@router.patch("/{id}", dependencies=[coach_query_guard])
async def update_athlete(athlete_id: PathId, ctx: Context, body: UpdateAthleteRequest):
    """
    Patch an athlete.

    When a name changes without full_name, full_name is recomputed.
    """
    return {"ok": True, "athlete": AthleteService.update(athlete_id, ctx.org_id, body)}

# =============================================================================
# app/routers/teams.py - Team Endpoints
# =============================================================================
# Coach-only team listings. Every route is guarded on the org_id query param.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.auth.guards import org_role_guard_from_query
from app.dependencies import Context
from app.exceptions import BadRequestError
from core.services.team_service import TeamService

router = APIRouter(dependencies=[Depends(org_role_guard_from_query("org_id", ["coach"]))])


@router.get("/list")
async def list_teams(ctx: Context):
    """List the org's teams ordered by name."""
    return {"ok": True, "data": TeamService.list_teams(ctx.org_id)}


@router.get("/list-with-athletes")
async def list_teams_with_athletes(ctx: Context):
    """List teams, newest first, each with its athletes."""
    teams = TeamService.list_teams_with_athletes(ctx.org_id)
    return {"ok": True, "count": len(teams), "data": teams}


@router.get("/athletes-by-team")
async def list_team_athletes(
    ctx: Context,
    team_id: Annotated[str | None, Query(description="Team UUID")] = None,
):
    """List the active athletes of one team."""
    team_id = (team_id or "").strip()
    if not team_id:
        raise BadRequestError("Query parameter 'team_id' is required.")

    athletes = TeamService.list_team_athletes(ctx.org_id, team_id)
    return {"ok": True, "count": len(athletes), "data": athletes}

# =============================================================================
# app/routers/scorecard.py - Scorecard Template Endpoints
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from app.auth.guards import org_role_guard_from_body, org_role_guard_from_query
from app.dependencies import Context, CurrentUser, optional_uuid_param, pagination, require_uuid_param
from core.models.scorecard import CreateScorecardTemplateRequest
from core.services.scorecard_service import ScorecardService
from lib.utils import clean_str

router = APIRouter()

coach_query_guard = Depends(org_role_guard_from_query("org_id", ["coach"]))


@router.post("", status_code=201, dependencies=[Depends(org_role_guard_from_body("org_id", ["coach"]))])
async def create_template(body: CreateScorecardTemplateRequest, user: CurrentUser):
    """
    Create a scorecard template with its categories and subskills.

    The whole tree is written in one transaction; the caller is recorded
    as created_by.
    """
    template_id = ScorecardService.create_template(body, created_by=str(user.id))
    return {"ok": True, "templateId": template_id}


@router.get("/list", dependencies=[Depends(org_role_guard_from_query("org_id", ["coach", "athlete"]))])
async def list_templates(
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(10))],
    sport_id: Annotated[str | None, Query()] = None,
    q: Annotated[str | None, Query(description="Matches name or description")] = None,
):
    """List the org's templates, most recently updated first."""
    limit, offset = page
    items, count = ScorecardService.list_templates(
        ctx.org_id,
        sport_id=optional_uuid_param(sport_id, "sport_id"),
        q=clean_str(q),
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": count, "items": items}


@router.get("/categories", dependencies=[coach_query_guard])
async def list_categories(
    request: Request,
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(100, max_limit=500))],
):
    """Categories of one template, ordered by position."""
    template_id = require_uuid_param(request, "scorecard_template_id")
    limit, offset = page
    items, count = ScorecardService.list_categories(ctx.org_id, template_id, limit=limit, offset=offset)
    return {"ok": True, "count": count, "items": items}


@router.get("/subskills", dependencies=[coach_query_guard])
async def list_subskills(
    request: Request,
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(100, max_limit=500))],
):
    """Subskills of one category, ordered by position."""
    category_id = require_uuid_param(request, "category_id")
    limit, offset = page
    items, count = ScorecardService.list_subskills(ctx.org_id, category_id, limit=limit, offset=offset)
    return {"ok": True, "count": count, "items": items}

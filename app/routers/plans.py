# =============================================================================
# app/routers/plans.py - Practice Plan Endpoints
# =============================================================================
# Guards run in the order listed: the org guard first (it sets ctx.org_id),
# then the user or plan guard, which may compare against ctx.org_id.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.auth.guards import (
    org_role_guard_from_query,
    plan_create_guard,
    plan_read_guard,
    plan_write_guard,
    user_query_guard,
)
from app.dependencies import Context, CurrentUser, PathId, pagination
from app.exceptions import ForbiddenError
from core.models.plan import (
    CreatePlanRequest,
    InvitePlanMembersRequest,
    PlanListType,
    UpdatePlanRequest,
)
from core.services.plan_service import PlanService

router = APIRouter()

org_guard = Depends(org_role_guard_from_query("org_id", ["coach", "athlete"]))


@router.get("/list", dependencies=[org_guard, Depends(user_query_guard("user_id", allow_missing=True))])
async def list_plans(
    user: CurrentUser,
    type: Annotated[PlanListType, Query(description="prebuild or custom")],
    page: Annotated[tuple[int, int], Depends(pagination(50))],
):
    """
    List plans by type.

    `prebuild` returns the shared catalogue; `custom` returns the caller's
    own plans.
    """
    limit, offset = page
    items, count = PlanService.list_plans(type, str(user.id), limit, offset)
    return {"ok": True, "count": count, "items": items}


@router.get("/invited", dependencies=[org_guard, Depends(user_query_guard("user_id"))])
async def list_invited_plans(
    user: CurrentUser,
    page: Annotated[tuple[int, int], Depends(pagination(50))],
):
    """List plans the caller was invited to but doesn't own."""
    limit, offset = page
    items, count = PlanService.list_invited_plans(str(user.id), limit, offset)
    return {"ok": True, "count": count, "items": items}


@router.post("", status_code=201, dependencies=[Depends(plan_create_guard())])
async def create_plan(body: CreatePlanRequest, user: CurrentUser):
    """
    Create a plan with at least one item.

    Org plans need the coach role in that org; personal plans (no org_id)
    only need a signed-in owner.
    """
    if body.owner_user_id.lower() != str(user.id).lower():
        raise ForbiddenError("owner_user_id must match the authenticated user")
    return {"ok": True, "plan": PlanService.create_plan(body)}


@router.get("/{id}", dependencies=[org_guard, Depends(plan_read_guard())])
async def get_plan(plan_id: PathId):
    """Get a plan with its items ordered by position."""
    return {"ok": True, "plan": PlanService.get_plan(plan_id)}


@router.post("/{id}/invite", dependencies=[org_guard, Depends(plan_write_guard())])
async def invite_plan_members(plan_id: PathId, ctx: Context, body: InvitePlanMembersRequest):
    """
    Invite org athletes and coaches to a plan.

    Users already on the plan are reported in skipped_user_ids.
    """
    result = PlanService.invite_members(plan_id, ctx.org_id, body)
    return {"ok": True, "plan_id": plan_id, **result}


@router.patch("/{id}", dependencies=[org_guard, Depends(plan_write_guard())])
async def update_plan(plan_id: PathId, body: UpdatePlanRequest):
    """
    Patch a plan.

    remove_item_ids are deleted first; add_items are appended after the
    last position.
    """
    return {"ok": True, "plan": PlanService.update_plan(plan_id, body)}

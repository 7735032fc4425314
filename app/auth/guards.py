# =============================================================================
# app/auth/guards.py - Route Guards
# =============================================================================
# Dependency factories that authorize a request before its handler runs.
# Each guard either raises (short-circuiting the request with an error
# response) or annotates the RequestContext on request.state.
#
# Guards assume get_current_user already ran (it is a router dependency), so
# they run in the order they are listed in a route's `dependencies=[...]`.
#
# Usage:
#   @router.get("/list", dependencies=[Depends(org_role_guard_from_query("org_id", ["coach"]))])
# =============================================================================

import logging
from typing import Any, Callable, Sequence

from fastapi import Request

from app.auth.dependencies import get_request_context
from app.auth.models import RequestContext
from app.exceptions import (
    BadRequestError,
    ForbiddenError,
    InvalidUUIDError,
    NotFoundError,
    UnauthorizedError,
)
from core.services.membership_service import MembershipService
from core.services.plan_service import PlanService
from lib.utils import is_uuid

logger = logging.getLogger(__name__)

Guard = Callable[[Request], Any]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _require_user_id(ctx: RequestContext) -> str:
    if ctx.user is None:
        raise UnauthorizedError("Unauthorized")
    return str(ctx.user.id)


async def _read_json_object(request: Request, message: str = "Invalid JSON payload") -> dict:
    """Read the request body as a JSON object or fail with a 400."""
    try:
        body = await request.json()
    except ValueError:
        raise BadRequestError(message, code="INVALID_JSON")
    if not isinstance(body, dict):
        raise BadRequestError(message, code="INVALID_JSON")
    return body


def _grant_org_role(ctx: RequestContext, org_id: str, allowed_roles: Sequence[str]) -> None:
    user_id = _require_user_id(ctx)
    ctx.org_role = MembershipService.require_org_role(user_id, org_id, allowed_roles)
    ctx.org_id = org_id


# -----------------------------------------------------------------------------
# Organization Guards
# -----------------------------------------------------------------------------

def org_role_guard_from_query(param_name: str, allowed_roles: Sequence[str]) -> Guard:
    """Require an org role for the org named by a query parameter."""

    async def guard(request: Request) -> None:
        org_id = (request.query_params.get(param_name) or "").strip()
        if not is_uuid(org_id):
            raise InvalidUUIDError(param_name)
        _grant_org_role(get_request_context(request), org_id, allowed_roles)

    return guard


def org_role_guard_from_body(
    key: str,
    allowed_roles: Sequence[str],
    optional: bool = False,
) -> Guard:
    """
    Require an org role for the org named by a JSON body field.

    With optional=True a missing, null or empty value skips the check.
    """

    async def guard(request: Request) -> None:
        body = await _read_json_object(request)
        value = body.get(key)
        if optional and (value is None or value == ""):
            return
        if not isinstance(value, str) or not is_uuid(value):
            raise InvalidUUIDError(key)
        _grant_org_role(get_request_context(request), value.strip(), allowed_roles)

    return guard


def evaluation_bulk_org_guard(allowed_roles: Sequence[str]) -> Guard:
    """Require every evaluation in a bulk payload to target one org the caller can access."""

    async def guard(request: Request) -> None:
        message = "Body must contain an 'evaluations' array."
        body = await _read_json_object(request, message)
        evaluations = body.get("evaluations")
        if not isinstance(evaluations, list) or not evaluations:
            raise BadRequestError(message)

        org_ids = {
            item["org_id"].strip()
            for item in evaluations
            if isinstance(item, dict) and isinstance(item.get("org_id"), str) and item["org_id"].strip()
        }
        if len(org_ids) != 1:
            raise BadRequestError("All evaluations must share the same org_id.")

        org_id = next(iter(org_ids))
        if not is_uuid(org_id):
            raise InvalidUUIDError("org_id")
        _grant_org_role(get_request_context(request), org_id, allowed_roles)

    return guard


# -----------------------------------------------------------------------------
# User Guards
# -----------------------------------------------------------------------------

def user_query_guard(param_name: str, allow_missing: bool = False) -> Guard:
    """Require a user-id query parameter to name the caller."""

    async def guard(request: Request) -> None:
        value = (request.query_params.get(param_name) or "").strip()
        if not value:
            if allow_missing:
                return
            raise InvalidUUIDError(param_name)
        if not is_uuid(value):
            raise InvalidUUIDError(param_name)

        user_id = _require_user_id(get_request_context(request))
        if value != user_id:
            raise ForbiddenError("Forbidden")

    return guard


# -----------------------------------------------------------------------------
# Practice Plan Guards
# -----------------------------------------------------------------------------

def _plan_guard(allow_members: bool) -> Guard:

    async def guard(request: Request) -> None:
        plan_id = (request.path_params.get("id") or "").strip()
        if not is_uuid(plan_id):
            raise InvalidUUIDError("id")

        ctx = get_request_context(request)
        user_id = _require_user_id(ctx)

        access = PlanService.get_plan_access(plan_id)
        if access is None:
            raise NotFoundError("Plan not found", code="PLAN_NOT_FOUND")

        plan_org_id = access.get("org_id")
        if ctx.org_id and plan_org_id and ctx.org_id != plan_org_id:
            raise ForbiddenError("Forbidden")

        if access.get("owner_user_id") == user_id:
            return
        if allow_members and PlanService.is_plan_member(plan_id, user_id):
            return

        if plan_org_id:
            _grant_org_role(ctx, plan_org_id, ["coach"])
            return

        raise ForbiddenError("Forbidden")

    return guard


def plan_read_guard() -> Guard:
    """Owner, plan member, or org coach may read a plan."""
    return _plan_guard(allow_members=True)


def plan_write_guard() -> Guard:
    """Owner or org coach may modify a plan."""
    return _plan_guard(allow_members=False)


def plan_create_guard() -> Guard:
    """Personal plans need no org; org plans need the coach role."""

    async def guard(request: Request) -> None:
        body = await _read_json_object(request)
        value = body.get("org_id")
        if value is None or value == "":
            return
        if not isinstance(value, str) or not is_uuid(value):
            raise InvalidUUIDError("org_id")
        _grant_org_role(get_request_context(request), value.strip(), ["coach"])

    return guard

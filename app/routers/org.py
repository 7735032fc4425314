# =============================================================================
# app/routers/org.py - Organization Signup Endpoint
# =============================================================================
# Public router used to onboard a new organization with its admin user.
# =============================================================================

from fastapi import APIRouter

from core.models.auth import OrgSignupRequest
from core.services.org_service import OrgService

router = APIRouter()


@router.post("/signup", status_code=201)
async def org_signup(body: OrgSignupRequest):
    """
    Create an organization, its admin user and its initial teams.

    Returns userId, orgId, profileId and teamIds.
    """
    result = OrgService.signup(body)
    return {"ok": True, **result}

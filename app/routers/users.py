# =============================================================================
# app/routers/users.py - Organization User Directory
# =============================================================================

from fastapi import APIRouter, Depends

from app.auth.guards import org_role_guard_from_query
from app.dependencies import Context
from core.services.user_service import UserService

router = APIRouter()


@router.get("/list", dependencies=[Depends(org_role_guard_from_query("org_id", ["coach", "athlete"]))])
async def list_users(ctx: Context):
    """List the org's athletes and coaches that can sign in."""
    items = UserService.list_org_users(ctx.org_id)
    return {"ok": True, "count": len(items), "items": items}

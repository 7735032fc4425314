# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Provides JWT-based authentication using Supabase Auth, plus the guard
# dependencies that authorize organization and plan access.
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   router = APIRouter(dependencies=[Depends(get_current_user)])
# =============================================================================

from app.auth.dependencies import get_current_user, get_request_context, verify_access_token
from app.auth.models import AuthUser, RequestContext, OrgRole, ORG_ROLES

__all__ = [
    "get_current_user",
    "get_request_context",
    "verify_access_token",
    "AuthUser",
    "RequestContext",
    "OrgRole",
    "ORG_ROLES",
]

# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data and the per-request context the
# guard chain fills in.
# =============================================================================

from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel

# Organization roles, as stored in org_memberships.role
OrgRole = Literal["owner", "admin", "coach", "athlete", "parent"]
ORG_ROLES: tuple[str, ...] = ("owner", "admin", "coach", "athlete", "parent")

# Admin roles pass every role check
ADMIN_ROLES: frozenset[str] = frozenset({"owner", "admin"})


class AuthUser(BaseModel):
    """
    Authenticated user extracted from a Supabase JWT.

    This is the minimal user info available from the token itself,
    without querying the database.
    """
    id: UUID
    email: Optional[str] = None

    model_config = {"frozen": True}


class RequestContext(BaseModel):
    """
    Per-request context shared by the guard chain and handlers.

    - user: set by the auth guard
    - org_id / org_role: set by the org role guards once access is granted
    """
    user: Optional[AuthUser] = None
    org_id: Optional[str] = None
    org_role: Optional[OrgRole] = None

    @property
    def user_id(self) -> str | None:
        return str(self.user.id) if self.user else None

# =============================================================================
# core/services/membership_service.py - Organization Membership Lookups
# =============================================================================
# Resolves a user's role inside an organization and enforces role checks
# for the guard chain.
# =============================================================================

import logging
from typing import Iterable

from lib.supabase_client import SupabaseClient, SupabaseClientError
from app.auth.models import ADMIN_ROLES, ORG_ROLES
from app.exceptions import ForbiddenError

logger = logging.getLogger(__name__)


class MembershipService:
    """
    Service for org_memberships lookups.
    """

    @staticmethod
    def get_org_role(user_id: str, org_id: str) -> str | None:
        """
        Get the active role of a user inside an organization.

        Lookup failures are treated as "no membership" so the caller answers
        403 rather than leaking database errors from the guard chain.

        Returns:
            One of ORG_ROLES, or None when there is no active membership
        """
        client = SupabaseClient.get_client()
        try:
            row = SupabaseClient.fetch_one(
                client.table("org_memberships")
                .select("role, is_active")
                .eq("org_id", org_id)
                .eq("user_id", user_id)
                .eq("is_active", True),
                action="look up org membership",
            )
        except SupabaseClientError as e:
            logger.warning(f"Membership lookup failed for user {user_id} in org {org_id}: {e.message}")
            return None

        if not row or not row.get("is_active") or row.get("role") not in ORG_ROLES:
            return None
        return row["role"]

    @staticmethod
    def has_role_access(role: str, allowed_roles: Iterable[str]) -> bool:
        """Admin roles pass every check; others must be listed."""
        return role in ADMIN_ROLES or role in allowed_roles

    @staticmethod
    def require_org_role(user_id: str, org_id: str, allowed_roles: Iterable[str]) -> str:
        """
        Require the user to hold one of the allowed roles in the org.

        Returns:
            The user's role

        Raises:
            ForbiddenError: "No access to this organization" or
                "Insufficient role for this action"
        """
        role = MembershipService.get_org_role(user_id, org_id)
        if role is None:
            raise ForbiddenError("No access to this organization", code="NO_ORG_ACCESS")
        if not MembershipService.has_role_access(role, allowed_roles):
            raise ForbiddenError("Insufficient role for this action", code="INSUFFICIENT_ROLE")
        return role

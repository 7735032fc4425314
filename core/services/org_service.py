# =============================================================================
# core/services/org_service.py - Organization Signup
# =============================================================================
# Registers a new organization together with its admin user and initial
# teams through the signup_register_org_tx stored procedure.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from core.models.auth import OrgSignupRequest
from app.exceptions import AnkorException, BadRequestError

logger = logging.getLogger(__name__)


class OrgService:
    """
    Service for organization onboarding.
    """

    @staticmethod
    def signup(request: OrgSignupRequest) -> dict[str, Any]:
        """
        Create the admin user, then the org, admin profile and teams.

        Returns:
            {userId, orgId, profileId, teamIds}

        Raises:
            BadRequestError: Missing admin fields, invalid organization data,
                or the admin user couldn't be created
            AnkorException: The registration procedure failed (500)
        """
        admin = request.admin
        org = request.organization
        if admin is None or not admin.is_complete():
            raise BadRequestError("Missing admin fields", code="INVALID_ADMIN")
        if org is None or not org.is_valid():
            raise BadRequestError("Invalid organization data", code="INVALID_ORGANIZATION")

        try:
            user_id = SupabaseClient.create_auth_user(
                email=admin.email,
                password=admin.password,
                user_metadata={
                    "first_name": admin.first_name,
                    "last_name": admin.last_name,
                    "role": "admin",
                },
            )
        except SupabaseClientError as e:
            raise BadRequestError(f"Could not create user: {e.message}", code="USER_CREATE_FAILED")

        try:
            rows = SupabaseClient.call_rpc(
                "signup_register_org_tx",
                {
                    "p_user_id": user_id,
                    "p_first_name": admin.first_name,
                    "p_last_name": admin.last_name,
                    "p_email": admin.email,
                    "p_phone": admin.phone,
                    "p_org_name": org.name,
                    "p_program_gender": org.program_gender,
                    "p_team_names": request.team_names(),
                },
            )
        except SupabaseClientError as e:
            SupabaseClient.delete_auth_user(user_id)
            raise AnkorException(f"Signup failed: {e.message}", code="ORG_SIGNUP_FAILED")

        if not rows:
            SupabaseClient.delete_auth_user(user_id)
            raise AnkorException("Signup failed: RPC returned no data", code="ORG_SIGNUP_FAILED")

        result = rows[0]
        logger.info(f"Registered organization {result.get('org_id')} with admin {user_id}")
        return {
            "userId": user_id,
            "orgId": result.get("org_id"),
            "profileId": result.get("profile_id"),
            "teamIds": result.get("team_ids") or [],
        }

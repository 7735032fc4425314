# =============================================================================
# core/services/auth_service.py - Signup and Login
# =============================================================================
# Join-code signup for athletes, coaches and parents, and the login lookup
# that resolves a verified token to a profile.
#
# Signup flow:
# 1. Create a confirmed auth user (role in app_metadata)
# 2. Call signup_register_<role>_with_code_tx to attach it to the org
# 3. On RPC failure, delete the auth user and map the RPC error code
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from core.models.auth import AthleteSignup, CoachSignup, ParentSignup
from app.exceptions import (
    AnkorException,
    BadRequestError,
    ConflictError,
    NotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = "Welcome to ANKOR!"

# RPC error code -> client message (all 400)
SIGNUP_ERROR_MESSAGES: list[tuple[tuple[str, ...], str]] = [
    (("INVALID_JOIN_CODE", "EXPIRED_OR_USED_JOIN_CODE"), "Invalid or expired join code."),
    (("TERMS_REQUIRED",), "You must accept the terms & conditions."),
    (("GRADUATION_YEAR_REQUIRED",), "Graduation year is required."),
    (("POSITION_REQUIRED",), "At least one position is required."),
    (("FIRST_NAME_REQUIRED",), "First name is required."),
    (("LAST_NAME_REQUIRED",), "Last name is required."),
    (("EMAIL_REQUIRED",), "Valid email is required."),
]


def map_signup_error(message: str) -> AnkorException:
    """Translate a signup RPC failure into an API error."""
    for codes, friendly in SIGNUP_ERROR_MESSAGES:
        if any(code in message for code in codes):
            return BadRequestError(friendly, code="SIGNUP_REJECTED")
    return AnkorException(f"Signup failed: {message}", code="SIGNUP_FAILED", status_code=500)


class AuthService:
    """
    Service for signup and login.
    """

    @staticmethod
    def signup(request: AthleteSignup | CoachSignup | ParentSignup) -> dict[str, Any]:
        """
        Register a user in an organization with a join code.

        Returns:
            {user_id, role, ...first RPC row, message}

        Raises:
            BadRequestError: Invalid positions or a rejected join code
            ConflictError: Email already registered
        """
        positions: list[str] = []
        if isinstance(request, AthleteSignup):
            if request.invalid_positions():
                raise BadRequestError("Invalid position value(s).", code="INVALID_POSITION")
            positions = request.normalized_positions()

        user_metadata: dict[str, Any] = {
            "first_name": request.first_name,
            "last_name": request.last_name,
            "username": request.username,
            "cell_number": request.cell_number,
            "join_code": request.join_code,
        }
        if isinstance(request, AthleteSignup):
            user_metadata["graduation_year"] = request.graduation_year
            user_metadata["positions"] = positions

        try:
            user_id = SupabaseClient.create_auth_user(
                email=str(request.email),
                password=request.password,
                user_metadata=user_metadata,
                app_metadata={"role": request.role},
            )
        except SupabaseClientError as e:
            if "already registered" in e.message.lower():
                raise ConflictError("Email already registered", code="EMAIL_TAKEN")
            raise AnkorException(f"Failed to create user: {e.message}", code="USER_CREATE_FAILED")

        params: dict[str, Any] = {
            "p_user_id": user_id,
            "p_code": request.join_code,
            "p_first_name": request.first_name,
            "p_last_name": request.last_name,
            "p_email": str(request.email),
            "p_cell_number": request.cell_number,
            "p_terms_accepted": True,
        }
        if isinstance(request, AthleteSignup):
            params["p_graduation_year"] = request.graduation_year
            params["p_positions"] = positions

        try:
            rows = SupabaseClient.call_rpc(f"signup_register_{request.role}_with_code_tx", params)
        except SupabaseClientError as e:
            SupabaseClient.delete_auth_user(user_id)
            raise map_signup_error(e.message)

        first_row = rows[0] if isinstance(rows, list) and rows and isinstance(rows[0], dict) else {}
        logger.info(f"Registered {request.role} {user_id}")
        return {
            "user_id": user_id,
            "role": request.role,
            **first_row,
            "message": WELCOME_MESSAGE,
        }

    @staticmethod
    def login(user_id: str, token_user_id: str) -> dict[str, Any]:
        """
        Resolve the signed-in user's profile.

        A user who is both the athlete and the guardian contact (same email)
        in their default org is reported as a parent.

        Raises:
            UnauthorizedError: Token subject differs from user_id
            NotFoundError: No profile
        """
        if token_user_id.lower() != user_id.lower():
            raise UnauthorizedError("Token does not match user", code="TOKEN_USER_MISMATCH")

        client = SupabaseClient.get_client()
        profile = SupabaseClient.fetch_one(
            client.table("profiles")
            .select("id, email, full_name, role, default_org_id")
            .eq("id", user_id),
            action="load profile",
        )
        if not profile:
            raise NotFoundError("Profile not found", code="PROFILE_NOT_FOUND")

        profile_user_id = (profile.get("id") or "").strip()
        org_id = (profile.get("default_org_id") or "").strip()
        role = profile.get("role")

        if org_id and profile_user_id:
            emails = []
            for table in ("athletes", "guardian_contacts"):
                row = SupabaseClient.fetch_one(
                    client.table(table)
                    .select("email")
                    .eq("org_id", org_id)
                    .eq("user_id", profile_user_id),
                    action=f"load {table} email",
                )
                emails.append(((row or {}).get("email") or "").strip().lower())
            if emails[0] and emails[0] == emails[1]:
                role = "parent"

        coach_id = None
        athlete_id = None
        if role in ("coach", "athlete") and profile_user_id:
            table = "coaches" if role == "coach" else "athletes"
            row = SupabaseClient.fetch_one(
                client.table(table).select("id").eq("user_id", profile_user_id),
                action=f"load {role} id",
            )
            if role == "coach":
                coach_id = (row or {}).get("id")
            else:
                athlete_id = (row or {}).get("id")

        return {
            "id": profile.get("id"),
            "full_name": profile.get("full_name"),
            "email": profile.get("email"),
            "role": role,
            "default_org_id": profile.get("default_org_id"),
            "coach_id": coach_id,
            "athlete_id": athlete_id,
        }

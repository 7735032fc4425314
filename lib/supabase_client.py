# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides the shared Supabase client and thin helpers around
# supabase-py for executing table queries, calling stored procedures (RPCs)
# and administering auth users.
#
# The singleton uses the service_role key, so every query bypasses Row Level
# Security. Authorization happens in the API guard chain before any call.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   client = SupabaseClient.get_client()
#   rows = SupabaseClient.fetch_all(
#       client.table("teams").select("id, name").eq("org_id", org_id),
#       action="list teams",
#   )
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from postgrest.exceptions import APIError
from supabase import create_client, Client

from app.config import settings
from app.exceptions import AnkorException

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST codes returned by maybe_single() when no row matches
_NO_ROWS_CODES = {"204", "PGRST116"}


class SupabaseClientError(AnkorException):
    """
    Error during Supabase operations (database, RPC, auth admin or storage).

    The upstream message is kept as the API error message so callers can
    inspect it (e.g. RPC error codes such as INVALID_JOIN_CODE).
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=500,
            suggestion=suggestion,
            details=details,
        )

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def error_message(exc: Exception) -> str:
    """Best human-readable message for a supabase/postgrest exception."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or exc.__class__.__name__


class SupabaseClient:
    """
    Wrapper for Supabase operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side operations.

        Returns:
            Client: Supabase client instance

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    # -------------------------------------------------------------------------
    # Query Execution
    # -------------------------------------------------------------------------

    @classmethod
    def execute(cls, query: Any, action: str) -> Any:
        """
        Execute a query builder and wrap failures.

        Args:
            query: A supabase-py request builder (table/rpc chain)
            action: Short description used in logs (e.g. "list teams")

        Returns:
            The supabase-py APIResponse (use .data / .count)

        Raises:
            SupabaseClientError: If the request fails
        """
        try:
            return query.execute()
        except APIError as e:
            message = error_message(e)
            logger.error(f"Failed to {action}: {message}")
            raise SupabaseClientError(
                message=message,
                code="DATABASE_ERROR",
                details={"action": action, "db_code": getattr(e, "code", None)},
            )
        except SupabaseClientError:
            raise
        except Exception as e:
            message = error_message(e)
            logger.error(f"Failed to {action}: {message}")
            raise SupabaseClientError(
                message=message,
                code="DATABASE_ERROR",
                details={"action": action},
            )

    @classmethod
    def fetch_all(cls, query: Any, action: str) -> list[dict[str, Any]]:
        """Execute a query and return its rows (never None)."""
        response = cls.execute(query, action)
        return list(response.data or [])

    @classmethod
    def fetch_page(cls, query: Any, action: str) -> tuple[list[dict[str, Any]], int]:
        """Execute a count="exact" query and return (rows, total count)."""
        response = cls.execute(query, action)
        rows = list(response.data or [])
        count = response.count if response.count is not None else len(rows)
        return rows, count

    @classmethod
    def fetch_one(cls, query: Any, action: str) -> dict[str, Any] | None:
        """
        Execute a query with maybe_single() semantics.

        Returns:
            The single matching row, or None when nothing matches
        """
        try:
            response = query.maybe_single().execute()
        except APIError as e:
            if str(getattr(e, "code", "")) in _NO_ROWS_CODES:
                return None
            message = error_message(e)
            logger.error(f"Failed to {action}: {message}")
            raise SupabaseClientError(
                message=message,
                code="DATABASE_ERROR",
                details={"action": action, "db_code": getattr(e, "code", None)},
            )
        except Exception as e:
            message = error_message(e)
            logger.error(f"Failed to {action}: {message}")
            raise SupabaseClientError(message=message, code="DATABASE_ERROR", details={"action": action})

        if response is None:
            return None
        return response.data or None

    @classmethod
    def call_rpc(cls, function: str, params: dict[str, Any]) -> Any:
        """
        Call a stored procedure.

        Args:
            function: RPC name (e.g. "create_athlete_tx")
            params: Named arguments

        Returns:
            The RPC result data

        Raises:
            SupabaseClientError: If the procedure raises; message is the DB message
        """
        client = cls.get_client()
        response = cls.execute(client.rpc(function, params), action=f"call {function}")
        return response.data

    # -------------------------------------------------------------------------
    # Auth Administration
    # -------------------------------------------------------------------------

    @classmethod
    def create_auth_user(
        cls,
        email: str,
        password: str,
        user_metadata: dict[str, Any] | None = None,
        app_metadata: dict[str, Any] | None = None,
    ) -> str:
        """
        Create a confirmed auth user.

        Returns:
            The new user's id

        Raises:
            SupabaseClientError: With the provider's message (e.g. "User already registered")
        """
        client = cls.get_client()
        attributes: dict[str, Any] = {
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": user_metadata or {},
        }
        if app_metadata:
            attributes["app_metadata"] = app_metadata

        try:
            response = client.auth.admin.create_user(attributes)
        except Exception as e:
            message = error_message(e)
            logger.error(f"Failed to create auth user {email}: {message}")
            raise SupabaseClientError(message=message, code="AUTH_CREATE_FAILED")

        user = getattr(response, "user", None)
        if user is None or not getattr(user, "id", None):
            raise SupabaseClientError(message="Auth user was not returned", code="AUTH_CREATE_FAILED")

        logger.info(f"Created auth user {user.id}")
        return str(user.id)

    @classmethod
    def delete_auth_user(cls, user_id: str) -> None:
        """Best-effort rollback of a created auth user; failures are logged."""
        try:
            cls.get_client().auth.admin.delete_user(user_id)
            logger.info(f"Rolled back auth user {user_id}")
        except Exception as e:
            logger.warning(f"Failed to roll back auth user {user_id}: {error_message(e)}")

    @classmethod
    def get_user_email(cls, user_id: str) -> str | None:
        """Look up a user's email through the auth admin API."""
        try:
            response = cls.get_client().auth.admin.get_user_by_id(user_id)
        except Exception as e:
            logger.warning(f"Failed to load auth user {user_id}: {error_message(e)}")
            return None
        user = getattr(response, "user", None)
        email = getattr(user, "email", None) if user else None
        return email or None

# =============================================================================
# core/services/user_service.py - Organization User Directory
# =============================================================================
# Lists the athletes and coaches of an org that have a login, e.g. to pick
# plan invitees.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def map_org_user(row: dict[str, Any], role: str) -> dict[str, Any]:
    return {
        "user_id": row.get("user_id"),
        "role": role,
        "full_name": row.get("full_name"),
        "phone": row.get("cell_number") or row.get("phone"),
        "graduation_year": row.get("graduation_year") if role == "athlete" else None,
    }


class UserService:
    """
    Service for the org user directory.
    """

    @staticmethod
    def list_org_users(org_id: str) -> list[dict[str, Any]]:
        """
        List athletes and coaches with a user_id.

        Sorted by full_name, then user_id.
        """
        client = SupabaseClient.get_client()
        athletes = SupabaseClient.fetch_all(
            client.table("athletes")
            .select("user_id, full_name, cell_number, phone, graduation_year")
            .eq("org_id", org_id),
            action="list org athletes",
        )
        coaches = SupabaseClient.fetch_all(
            client.table("coaches")
            .select("user_id, full_name, cell_number, phone")
            .eq("org_id", org_id),
            action="list org coaches",
        )

        users = [map_org_user(row, "athlete") for row in athletes if row.get("user_id")]
        users += [map_org_user(row, "coach") for row in coaches if row.get("user_id")]
        users.sort(key=lambda user: (user["full_name"] or "", user["user_id"] or ""))
        return users

# =============================================================================
# core/services/team_service.py - Team Queries
# =============================================================================
# Read-only team listings for coaches: teams, teams with their athletes, and
# the active roster of one team.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

TEAM_SELECT = "id, org_id, name, level, gender, season, is_active, join_code"


def map_team_athlete_row(row: dict[str, Any]) -> dict[str, Any]:
    """Flatten a team_athletes row with its embedded athlete."""
    athlete = row.get("athlete") or {}
    return {
        "team_id": row.get("team_id"),
        "id": athlete.get("id"),
        "org_id": athlete.get("org_id"),
        "user_id": athlete.get("user_id"),
        "first_name": athlete.get("first_name"),
        "last_name": athlete.get("last_name"),
        "full_name": athlete.get("full_name"),
        "phone": athlete.get("phone"),
        "graduation_year": athlete.get("graduation_year"),
        "cell_number": athlete.get("cell_number"),
    }


class TeamService:
    """
    Service for team listings.
    """

    @staticmethod
    def list_teams(org_id: str) -> list[dict[str, Any]]:
        """List the org's teams ordered by name."""
        client = SupabaseClient.get_client()
        return SupabaseClient.fetch_all(
            client.table("teams").select(TEAM_SELECT).eq("org_id", org_id).order("name"),
            action="list teams",
        )

    @staticmethod
    def list_teams_with_athletes(org_id: str) -> list[dict[str, Any]]:
        """
        List the org's teams (newest first) with their athletes.

        Athlete names come from the athlete's profile.
        """
        client = SupabaseClient.get_client()
        rows = SupabaseClient.fetch_all(
            client.table("teams")
            .select("id, org_id, name, created_at, athletes:athletes(id, profile:profiles(first_name, last_name))")
            .eq("org_id", org_id)
            .order("created_at", desc=True),
            action="list teams with athletes",
        )
        teams = []
        for row in rows:
            athletes = []
            for athlete in row.get("athletes") or []:
                profile = athlete.get("profile") or {}
                athletes.append({
                    "id": athlete.get("id"),
                    "first_name": profile.get("first_name"),
                    "last_name": profile.get("last_name"),
                })
            teams.append({
                "id": row.get("id"),
                "org_id": row.get("org_id"),
                "name": row.get("name"),
                "created_at": row.get("created_at"),
                "athletes": athletes,
            })
        return teams

    @staticmethod
    def list_team_athletes(org_id: str, team_id: str) -> list[dict[str, Any]]:
        """List the active athletes of a team, restricted to the org."""
        client = SupabaseClient.get_client()
        rows = SupabaseClient.fetch_all(
            client.table("team_athletes")
            .select(
                "team_id, athlete:athletes!inner(id, org_id, user_id, first_name, last_name, "
                "full_name, phone, graduation_year, cell_number)"
            )
            .eq("team_id", team_id)
            .eq("status", "active")
            .eq("athlete.org_id", org_id),
            action="list team athletes",
        )
        athletes = [map_team_athlete_row(row) for row in rows]
        return [athlete for athlete in athletes if athlete["org_id"] == org_id]

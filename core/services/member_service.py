# =============================================================================
# core/services/member_service.py - Athlete and Coach Management
# =============================================================================
# Coaches manage the athletes and coaches of their organization:
# - list / get / create / update for both
# - athlete creation also links (or creates) the guardian contact
#
# Creation makes auth users before calling the *_tx stored procedure; any
# user created in the request is deleted again when a later step fails.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import join_name
from core.models.member import (
    CreateAthleteRequest,
    CreateCoachRequest,
    UpdateCoachRequest,
)
from app.exceptions import AnkorException, ConflictError, NotFoundError

logger = logging.getLogger(__name__)

COACH_SELECT = (
    "id, org_id, user_id, email, first_name, last_name, full_name, phone, cell_number, "
    "profile:profiles(email)"
)
ATHLETE_SELECT = (
    "id, org_id, user_id, email, first_name, last_name, full_name, phone, cell_number, "
    "gender, graduation_year, profile:profiles(email), "
    "athlete_guardians(relationship, guardian:guardian_contacts(full_name, email, phone))"
)
TEAM_EMBED = "team_athletes(team_id, status, team:teams(id, name))"
TEAM_EMBED_INNER = "team_athletes!inner(team_id, status, team:teams(id, name))"


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    return [value] if value else []


def map_coach_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map a coaches row; the profile email wins over the row email."""
    profile = row.get("profile") or {}
    return {
        "id": row.get("id"),
        "org_id": row.get("org_id"),
        "user_id": row.get("user_id"),
        "first_name": row.get("first_name"),
        "last_name": row.get("last_name"),
        "full_name": row.get("full_name"),
        "email": profile.get("email") or row.get("email"),
        "phone": row.get("phone"),
        "cell_number": row.get("cell_number"),
    }


def map_athlete_row(row: dict[str, Any]) -> dict[str, Any]:
    """
    Map an athletes row with its active teams and first guardian.

    Team memberships with a status other than "active" are skipped.
    """
    teams: dict[str, dict[str, Any]] = {}
    for membership in _as_list(row.get("team_athletes")):
        status = membership.get("status")
        if status and status != "active":
            continue
        team = membership.get("team") or {}
        team_id = membership.get("team_id") or team.get("id")
        if team_id and team_id not in teams:
            teams[team_id] = {"id": team_id, "name": team.get("name")}

    guardians = _as_list(row.get("athlete_guardians"))
    link = guardians[0] if guardians else {}
    guardian = link.get("guardian")
    parent = None
    if guardian:
        parent = {
            "full_name": guardian.get("full_name"),
            "email": guardian.get("email"),
            "phone_number": guardian.get("phone"),
            "relationship": link.get("relationship"),
        }

    athlete = map_coach_row(row)
    athlete.update({
        "gender": row.get("gender"),
        "graduation_year": row.get("graduation_year"),
        "teams": list(teams.values()),
        "parent": parent,
    })
    return athlete


def _created_id(data: Any, key: str) -> str | None:
    """Pull the new row id out of a *_tx result (scalar, row or list of rows)."""
    if isinstance(data, str):
        return data
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        return data.get(key)
    return None


def _is_email_conflict(message: str) -> bool:
    """Auth "already registered" errors, or a unique violation on an email column."""
    lowered = message.lower()
    if "already registered" in lowered or "already been registered" in lowered or "email_exists" in lowered:
        return True
    return "duplicate" in lowered and "email" in lowered


def _raise_create_error(e: SupabaseClientError) -> None:
    if _is_email_conflict(e.message):
        raise ConflictError("Email already registered", code="EMAIL_TAKEN")
    raise e


class _MemberService:
    """Shared list/get/update logic for the athletes and coaches tables."""

    table: str = ""
    label: str = ""
    select: str = ""

    @classmethod
    def _map(cls, row: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def _select(cls, team_filter: bool = False) -> str:
        return cls.select

    @classmethod
    def list(
        cls,
        org_id: str,
        name: str | None = None,
        email: str | None = None,
        team_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """
        List members of an org ordered by last, then first name.

        Args:
            name: Matches full, first or last name (case-insensitive)
            email: Matches the profile email (case-insensitive)
            team_id: Active members of this team only (athletes)
        """
        client = SupabaseClient.get_client()
        query = (
            client.table(cls.table)
            .select(cls._select(team_filter=bool(team_id)), count="exact")
            .eq("org_id", org_id)
        )
        if name:
            query = query.or_(
                f"full_name.ilike.%{name}%,first_name.ilike.%{name}%,last_name.ilike.%{name}%"
            )
        if email:
            query = query.ilike("profiles.email", f"%{email}%")
        if team_id:
            query = query.eq("team_athletes.team_id", team_id).eq("team_athletes.status", "active")

        query = (
            query.order("last_name")
            .order("first_name")
            .range(offset, offset + limit - 1)
        )
        rows, count = SupabaseClient.fetch_page(query, action=f"list {cls.table}")
        return [cls._map(row) for row in rows], count

    @classmethod
    def get(cls, member_id: str, org_id: str) -> dict[str, Any]:
        """
        Get one member of an org.

        Raises:
            NotFoundError: "<Label> not found"
        """
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table(cls.table)
            .select(cls._select())
            .eq("id", member_id)
            .eq("org_id", org_id),
            action=f"get {cls.label.lower()}",
        )
        if not row:
            raise NotFoundError(f"{cls.label} not found", code=f"{cls.label.upper()}_NOT_FOUND")
        return cls._map(row)

    @classmethod
    def update(cls, member_id: str, org_id: str, request: UpdateCoachRequest) -> dict[str, Any]:
        """
        Patch a member. When a name changes without full_name, full_name is
        recomputed from the merged first/last names.

        Raises:
            NotFoundError: "<Label> not found"
        """
        client = SupabaseClient.get_client()
        not_found = NotFoundError(f"{cls.label} not found", code=f"{cls.label.upper()}_NOT_FOUND")
        patch = request.patch()

        if request.needs_full_name():
            current = SupabaseClient.fetch_one(
                client.table(cls.table)
                .select("first_name, last_name")
                .eq("id", member_id)
                .eq("org_id", org_id),
                action=f"load {cls.label.lower()} names",
            )
            if not current:
                raise not_found
            first = patch.get("first_name") or current.get("first_name")
            last = patch.get("last_name") or current.get("last_name")
            patch["full_name"] = join_name(first, last) or None

        rows = SupabaseClient.fetch_all(
            client.table(cls.table).update(patch).eq("id", member_id).eq("org_id", org_id),
            action=f"update {cls.label.lower()}",
        )
        if not rows:
            raise not_found

        logger.info(f"Updated {cls.label.lower()} {member_id}")
        return cls.get(member_id, org_id)


class CoachService(_MemberService):
    """
    Service for coach operations.
    """

    table = "coaches"
    label = "Coach"
    select = COACH_SELECT

    @classmethod
    def _map(cls, row: dict[str, Any]) -> dict[str, Any]:
        return map_coach_row(row)

    @classmethod
    def create(cls, request: CreateCoachRequest) -> dict[str, Any]:
        """
        Create a coach account and link it to the org via create_coach_tx.

        Raises:
            ConflictError: Email already registered
        """
        try:
            user_id = SupabaseClient.create_auth_user(
                email=str(request.email),
                password=request.password,
                user_metadata={
                    "first_name": request.first_name,
                    "last_name": request.last_name,
                    "cell_number": request.cell_number,
                },
                app_metadata={"role": "coach"},
            )
        except SupabaseClientError as e:
            _raise_create_error(e)

        try:
            data = SupabaseClient.call_rpc("create_coach_tx", {
                "p_user_id": user_id,
                "p_org_id": request.org_id,
                "p_first_name": request.first_name,
                "p_last_name": request.last_name,
                "p_full_name": request.resolved_full_name(),
                "p_email": str(request.email),
                "p_phone": request.phone,
                "p_cell_number": request.cell_number,
            })
            coach_id = _created_id(data, "coach_id")
            if not coach_id:
                raise AnkorException("Failed to create coach", code="COACH_CREATE_FAILED")
            coach = cls.get(coach_id, request.org_id)
        except AnkorException as e:
            SupabaseClient.delete_auth_user(user_id)
            if isinstance(e, SupabaseClientError):
                _raise_create_error(e)
            raise

        logger.info(f"Created coach {coach_id} in org {request.org_id}")
        return coach


class AthleteService(_MemberService):
    """
    Service for athlete operations.
    """

    table = "athletes"
    label = "Athlete"
    select = ATHLETE_SELECT

    @classmethod
    def _map(cls, row: dict[str, Any]) -> dict[str, Any]:
        return map_athlete_row(row)

    @classmethod
    def _select(cls, team_filter: bool = False) -> str:
        return f"{cls.select}, {TEAM_EMBED_INNER if team_filter else TEAM_EMBED}"

    @staticmethod
    def _remove_created_rows(athlete_id: str, org_id: str, guardian_email: str | None) -> None:
        """
        Best-effort delete of the rows create_athlete_tx wrote.

        The guardian contact is only removed when this request created it.
        """
        client = SupabaseClient.get_client()
        deletes = [("athletes", client.table("athletes").delete().eq("id", athlete_id).eq("org_id", org_id))]
        if guardian_email:
            deletes.append((
                "guardian_contacts",
                client.table("guardian_contacts").delete().eq("org_id", org_id).ilike("email", guardian_email),
            ))
        for table, query in deletes:
            try:
                SupabaseClient.execute(query, action=f"roll back {table}")
            except SupabaseClientError as e:
                logger.warning(f"Failed to roll back {table} for athlete {athlete_id}: {e.message}")

    @classmethod
    def create(cls, request: CreateAthleteRequest) -> dict[str, Any]:
        """
        Create an athlete account, link the guardian and put the athlete on a team.

        Guardian resolution:
        - an existing guardian contact of the org with the same email is reused
        - otherwise, if the guardian email is the athlete's, the athlete user is
          the guardian user
        - otherwise a parent account is created

        Raises:
            ConflictError: Email already registered
        """
        client = SupabaseClient.get_client()
        athlete_email = str(request.email).strip()
        guardian_email = str(request.parent_email).strip()

        try:
            user_id = SupabaseClient.create_auth_user(
                email=athlete_email,
                password=request.password,
                user_metadata={
                    "first_name": request.first_name,
                    "last_name": request.last_name,
                    "cell_number": request.cell_number,
                },
                app_metadata={"role": "athlete"},
            )
        except SupabaseClientError as e:
            _raise_create_error(e)

        created_users = [user_id]
        try:
            guardian = SupabaseClient.fetch_one(
                client.table("guardian_contacts")
                .select("id")
                .eq("org_id", request.org_id)
                .ilike("email", guardian_email),
                action="look up guardian contact",
            )
            guardian_id = (guardian or {}).get("id")
            guardian_user_id = None

            if not guardian_id:
                if request.guardian_is_athlete():
                    guardian_user_id = user_id
                else:
                    guardian_user_id = SupabaseClient.create_auth_user(
                        email=guardian_email,
                        password=request.password,
                        user_metadata={
                            "full_name": request.parent_full_name,
                            "cell_number": request.parent_mobile_phone,
                        },
                        app_metadata={"role": "parent"},
                    )
                    created_users.append(guardian_user_id)

            data = SupabaseClient.call_rpc("create_athlete_tx", {
                "p_user_id": user_id,
                "p_org_id": request.org_id,
                "p_team_id": request.team_id,
                "p_first_name": request.first_name,
                "p_last_name": request.last_name,
                "p_full_name": request.resolved_full_name(),
                "p_email": athlete_email,
                "p_phone": request.phone,
                "p_cell_number": request.cell_number,
                "p_gender": request.gender,
                "p_guardian_id": guardian_id,
                "p_guardian_user_id": guardian_user_id,
                "p_guardian_full_name": request.parent_full_name,
                "p_guardian_email": guardian_email,
                "p_guardian_phone": request.parent_mobile_phone,
                "p_guardian_relationship": request.relationship,
                "p_graduation_year": request.graduation_year,
            })
            athlete_id = _created_id(data, "athlete_id")
            if not athlete_id:
                raise AnkorException("Failed to create athlete", code="ATHLETE_CREATE_FAILED")
            try:
                athlete = cls.get(athlete_id, request.org_id)
            except AnkorException:
                cls._remove_created_rows(athlete_id, request.org_id, guardian_email if guardian_user_id else None)
                raise
        except AnkorException as e:
            for created in created_users:
                SupabaseClient.delete_auth_user(created)
            if isinstance(e, SupabaseClientError):
                _raise_create_error(e)
            raise

        logger.info(f"Created athlete {athlete_id} in org {request.org_id}")
        return athlete

# =============================================================================
# core/services/plan_service.py - Practice Plan Business Logic
# =============================================================================
# Handles practice plans: listing, reading, creating, updating and inviting
# members. Access decisions live in app/auth/guards.py; this service only
# exposes the lookups the guards need (get_plan_access, is_plan_member).
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import unique
from core.models.plan import (
    CreatePlanRequest,
    InvitePlanMembersRequest,
    PlanItemInput,
    UpdatePlanRequest,
)
from app.exceptions import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)

PLAN_SELECT = (
    "id, org_id, owner_user_id, name, description, visibility, status, tags, "
    "estimated_minutes, created_at, updated_at"
)
PLAN_ITEM_SELECT = (
    "id, plan_id, section_title, section_order, position, item_type, drill_id, title, "
    "instructions, sets, reps, duration_seconds, rest_seconds, config, drill:drills(name)"
)


class PlanNotFoundError(NotFoundError):
    """Raised when a plan is not found."""

    def __init__(self):
        super().__init__("Plan not found", code="PLAN_NOT_FOUND")


# -----------------------------------------------------------------------------
# Row Mapping
# -----------------------------------------------------------------------------

def map_plan_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map a practice_plans row to the API shape (with defaults)."""
    return {
        "id": row.get("id"),
        "org_id": row.get("org_id"),
        "owner_user_id": row.get("owner_user_id"),
        "name": row.get("name"),
        "description": row.get("description"),
        "visibility": row.get("visibility") or "private",
        "status": row.get("status") or "draft",
        "tags": row.get("tags") if isinstance(row.get("tags"), list) else [],
        "estimated_minutes": row.get("estimated_minutes"),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
    }


def map_plan_item_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map a practice_plan_items row, flattening the embedded drill name."""
    drill = row.get("drill") or {}
    return {
        "id": row.get("id"),
        "plan_id": row.get("plan_id"),
        "section_title": row.get("section_title"),
        "section_order": row.get("section_order"),
        "position": row.get("position"),
        "item_type": row.get("item_type") or "drill",
        "drill_id": row.get("drill_id"),
        "drill_name": drill.get("name"),
        "title": row.get("title"),
        "instructions": row.get("instructions"),
        "sets": row.get("sets"),
        "reps": row.get("reps"),
        "duration_seconds": row.get("duration_seconds"),
        "rest_seconds": row.get("rest_seconds"),
        "config": row.get("config") or {},
    }


def build_item_rows(plan_id: str, items: list[PlanItemInput], start_index: int = 0) -> list[dict[str, Any]]:
    """Build item rows; missing positions continue from start_index."""
    return [item.to_row(plan_id, start_index + index) for index, item in enumerate(items)]


class PlanService:
    """
    Service for practice plan operations.
    """

    # -------------------------------------------------------------------------
    # Access Lookups (used by the plan guards)
    # -------------------------------------------------------------------------

    @staticmethod
    def get_plan_access(plan_id: str) -> dict[str, Any] | None:
        """Return {id, org_id, owner_user_id} for a plan, or None."""
        client = SupabaseClient.get_client()
        return SupabaseClient.fetch_one(
            client.table("practice_plans")
            .select("id, org_id, owner_user_id")
            .eq("id", plan_id),
            action="load plan access",
        )

    @staticmethod
    def is_plan_member(plan_id: str, user_id: str) -> bool:
        """Check whether a user is a member of a plan."""
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("practice_plan_members")
            .select("user_id")
            .eq("plan_id", plan_id)
            .eq("user_id", user_id),
            action="check plan membership",
        )
        return row is not None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def list_plans(plan_type: str, user_id: str, limit: int, offset: int) -> tuple[list[dict], int]:
        """
        List plans by type.

        "prebuild" returns the shared catalogue; any other type returns only
        plans owned by user_id.

        Returns:
            (plans, total count)
        """
        client = SupabaseClient.get_client()
        query = (
            client.table("practice_plans")
            .select(PLAN_SELECT, count="exact")
            .eq("type", plan_type)
        )
        if plan_type != "prebuild":
            query = query.eq("owner_user_id", user_id)
        query = query.order("updated_at", desc=True).range(offset, offset + limit - 1)

        rows, count = SupabaseClient.fetch_page(query, action="list plans")
        return [map_plan_row(row) for row in rows], count

    @staticmethod
    def list_invited_plans(user_id: str, limit: int, offset: int) -> tuple[list[dict], int]:
        """
        List plans a user was invited to (member but not owner).

        Each plan carries member_role, invited_at and invited_by.
        """
        client = SupabaseClient.get_client()
        query = (
            client.table("practice_plans")
            .select(
                f"{PLAN_SELECT}, practice_plan_members!inner(role, user_id, added_by, created_at)",
                count="exact",
            )
            .eq("practice_plan_members.user_id", user_id)
            .neq("owner_user_id", user_id)
            .order("updated_at", desc=True)
            .range(offset, offset + limit - 1)
        )
        rows, count = SupabaseClient.fetch_page(query, action="list invited plans")

        plans = []
        for row in rows:
            plan = map_plan_row(row)
            members = row.get("practice_plan_members")
            member = (members[0] if members else None) if isinstance(members, list) else members
            member = member or {}
            plan["member_role"] = member.get("role") or "viewer"
            plan["invited_at"] = member.get("created_at") or plan["created_at"]
            plan["invited_by"] = member.get("added_by")
            plans.append(plan)
        return plans, count

    @staticmethod
    def get_plan(plan_id: str) -> dict[str, Any]:
        """
        Get a plan with its items (ordered by position).

        Raises:
            PlanNotFoundError: If the plan doesn't exist
        """
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("practice_plans")
            .select(f"{PLAN_SELECT}, practice_plan_items({PLAN_ITEM_SELECT})")
            .eq("id", plan_id),
            action="get plan",
        )
        if not row:
            raise PlanNotFoundError()

        items = [map_plan_item_row(item) for item in row.get("practice_plan_items") or []]
        items.sort(key=lambda item: (item["position"] is None, item["position"] or 0))

        plan = map_plan_row(row)
        plan["practice_plan_items"] = items
        return plan

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @staticmethod
    def create_plan(request: CreatePlanRequest) -> dict[str, Any]:
        """
        Create a plan and its items.

        If inserting the items fails, the plan row is deleted again.

        Returns:
            The created plan (without items)
        """
        client = SupabaseClient.get_client()

        payload: dict[str, Any] = {
            "owner_user_id": request.owner_user_id,
            "org_id": request.org_id,
            "type": request.type,
            "name": request.name,
            "description": request.description,
            "tags": request.tags,
            "estimated_minutes": request.estimated_minutes,
        }
        if request.visibility is not None:
            payload["visibility"] = request.visibility.value
        if request.status is not None:
            payload["status"] = request.status.value

        rows = SupabaseClient.fetch_all(
            client.table("practice_plans").insert(payload),
            action="create plan",
        )
        if not rows:
            raise BadRequestError("Failed to create plan", code="PLAN_CREATE_FAILED")
        plan = map_plan_row(rows[0])

        try:
            SupabaseClient.execute(
                client.table("practice_plan_items").insert(build_item_rows(plan["id"], request.items)),
                action="create plan items",
            )
        except Exception:
            logger.warning(f"Rolling back plan {plan['id']} after item insert failure")
            SupabaseClient.execute(
                client.table("practice_plans").delete().eq("id", plan["id"]),
                action="roll back plan",
            )
            raise

        logger.info(f"Created plan {plan['id']} with {len(request.items)} items")
        return plan

    @staticmethod
    def update_plan(plan_id: str, request: UpdatePlanRequest) -> dict[str, Any]:
        """
        Patch a plan, remove items, and append new items.

        New items without a position are placed after the current last item.

        Raises:
            PlanNotFoundError: If the plan doesn't exist
        """
        client = SupabaseClient.get_client()
        patch = request.plan_patch()

        if patch:
            rows = SupabaseClient.fetch_all(
                client.table("practice_plans").update(patch).eq("id", plan_id),
                action="update plan",
            )
            plan_row = rows[0] if rows else None
        else:
            plan_row = SupabaseClient.fetch_one(
                client.table("practice_plans").select(PLAN_SELECT).eq("id", plan_id),
                action="get plan",
            )
        if not plan_row:
            raise PlanNotFoundError()

        if request.remove_item_ids:
            SupabaseClient.execute(
                client.table("practice_plan_items")
                .delete()
                .eq("plan_id", plan_id)
                .in_("id", request.remove_item_ids),
                action="remove plan items",
            )

        if request.add_items:
            start_index = 0
            if any(item.position is None for item in request.add_items):
                last = SupabaseClient.fetch_one(
                    client.table("practice_plan_items")
                    .select("position")
                    .eq("plan_id", plan_id)
                    .order("position", desc=True)
                    .limit(1),
                    action="find last plan item",
                )
                last_position = last.get("position") if last else None
                start_index = last_position + 1 if isinstance(last_position, int) else 0

            SupabaseClient.execute(
                client.table("practice_plan_items").insert(
                    build_item_rows(plan_id, request.add_items, start_index)
                ),
                action="add plan items",
            )

        logger.info(f"Updated plan {plan_id}")
        return map_plan_row(plan_row)

    @staticmethod
    def invite_members(plan_id: str, org_id: str, request: InvitePlanMembersRequest) -> dict[str, list[str]]:
        """
        Invite org athletes/coaches to a plan.

        Users already on the plan are skipped. A pending invitation (by email)
        is recorded for each new member unless one already exists.

        Returns:
            {"invited_user_ids": [...], "skipped_user_ids": [...]}

        Raises:
            PlanNotFoundError: If the plan doesn't exist
            BadRequestError: If the plan has no org, the org doesn't match,
                users are outside the org, or a user has no email
        """
        client = SupabaseClient.get_client()
        user_ids = unique(request.user_ids)

        plan = SupabaseClient.fetch_one(
            client.table("practice_plans").select("id, org_id, owner_user_id").eq("id", plan_id),
            action="get plan",
        )
        if not plan:
            raise PlanNotFoundError()
        if not plan.get("org_id"):
            raise BadRequestError("Plan is not associated with an organization")
        if plan["org_id"] != org_id:
            raise BadRequestError("org_id does not match plan")

        allowed: set[str] = set()
        for table in ("athletes", "coaches"):
            rows = SupabaseClient.fetch_all(
                client.table(table).select("user_id").eq("org_id", org_id).in_("user_id", user_ids),
                action=f"check {table} in organization",
            )
            allowed.update(row["user_id"] for row in rows if row.get("user_id"))

        outside = [user_id for user_id in user_ids if user_id not in allowed]
        if outside:
            raise BadRequestError(f"Users not in organization: {', '.join(outside)}")

        existing_rows = SupabaseClient.fetch_all(
            client.table("practice_plan_members").select("user_id").eq("plan_id", plan_id).in_("user_id", user_ids),
            action="load plan members",
        )
        existing = {row["user_id"] for row in existing_rows if row.get("user_id")}
        to_invite = [user_id for user_id in user_ids if user_id not in existing]
        skipped = [user_id for user_id in user_ids if user_id in existing]

        if not to_invite:
            return {"invited_user_ids": [], "skipped_user_ids": skipped}

        invited_by = request.added_by or plan.get("owner_user_id")
        if not invited_by:
            raise BadRequestError("invited_by is required")

        emails = {user_id: SupabaseClient.get_user_email(user_id) for user_id in to_invite}
        missing = [user_id for user_id in to_invite if not emails[user_id]]
        if missing:
            raise BadRequestError(f"Missing emails for users: {', '.join(missing)}")

        pending_rows = SupabaseClient.fetch_all(
            client.table("practice_plan_invitations")
            .select("invited_email")
            .eq("plan_id", plan_id)
            .eq("status", "pending")
            .in_("invited_email", [emails[user_id] for user_id in to_invite]),
            action="load pending invitations",
        )
        pending = {row["invited_email"] for row in pending_rows if row.get("invited_email")}

        invitations = [
            {
                "plan_id": plan_id,
                "invited_by": invited_by,
                "invited_email": emails[user_id],
                "invited_user_id": user_id,
                "role": request.role,
            }
            for user_id in to_invite
            if emails[user_id] not in pending
        ]
        if invitations:
            SupabaseClient.execute(
                client.table("practice_plan_invitations").insert(invitations),
                action="create plan invitations",
            )

        SupabaseClient.execute(
            client.table("practice_plan_members").insert([
                {"plan_id": plan_id, "user_id": user_id, "role": request.role, "added_by": invited_by}
                for user_id in to_invite
            ]),
            action="add plan members",
        )

        logger.info(f"Invited {len(to_invite)} users to plan {plan_id}")
        return {"invited_user_ids": to_invite, "skipped_user_ids": skipped}

# =============================================================================
# core/models/plan.py - Practice Plan Schemas
# =============================================================================
# A practice plan is an ordered list of items (drills, notes, rests, custom
# blocks), optionally grouped into sections. Plans belong to an owner and may
# be shared with an organization or with invited members.
#
# Flow:
# 1. Coach/athlete creates a plan with at least one item
# 2. Owner (or an org coach) edits it: patch fields, add/remove items
# 3. Owner invites org athletes/coaches as members
# =============================================================================

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from .common import OptionalUUIDStr, TrimmedStr, UUIDStr


class PlanVisibility(str, Enum):
    """Who can discover a plan."""
    PRIVATE = "private"
    ORG = "org"
    SHARED = "shared"
    PREBUILT = "prebuilt"


class PlanStatus(str, Enum):
    """Lifecycle of a plan: draft -> published -> archived."""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class PlanItemType(str, Enum):
    """Kinds of plan items."""
    DRILL = "drill"
    NOTE = "note"
    REST = "rest"
    CUSTOM = "custom"


# "prebuild" lists the shared catalogue; "custom" lists the caller's own plans
PlanListType = Literal["prebuild", "custom"]


class PlanItemInput(BaseModel):
    """
    One item of a plan as sent by clients.

    Items of type "drill" must reference a drill.
    """

    section_title: TrimmedStr | None = Field(default=None, max_length=200)
    section_order: int | None = Field(default=None, ge=0)
    position: int | None = Field(
        default=None,
        ge=0,
        description="Ordering inside the plan; defaults to the item's index"
    )
    item_type: PlanItemType = PlanItemType.DRILL
    drill_id: OptionalUUIDStr = None
    title: TrimmedStr | None = Field(default=None, max_length=200)
    instructions: TrimmedStr | None = Field(default=None, max_length=4000)
    sets: int | None = Field(default=None, ge=0)
    reps: int | None = Field(default=None, ge=0)
    duration_seconds: int | None = Field(default=None, ge=0)
    rest_seconds: int | None = Field(default=None, ge=0)
    config: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _drill_items_need_drill(self) -> "PlanItemInput":
        if self.item_type == PlanItemType.DRILL and not self.drill_id:
            raise ValueError("drill_id is required when item_type=drill")
        return self

    def to_row(self, plan_id: str, default_position: int) -> dict[str, Any]:
        """Convert to a practice_plan_items row."""
        return {
            "plan_id": plan_id,
            "section_title": self.section_title,
            "section_order": self.section_order,
            "position": self.position if self.position is not None else default_position,
            "item_type": self.item_type.value,
            "drill_id": self.drill_id,
            "title": self.title,
            "instructions": self.instructions,
            "sets": self.sets,
            "reps": self.reps,
            "duration_seconds": self.duration_seconds,
            "rest_seconds": self.rest_seconds,
            "config": self.config or {},
        }


class CreatePlanRequest(BaseModel):
    """
    Schema for creating a plan.

    Example:
        {
            "owner_user_id": "550e8400-...",
            "org_id": "7c9e6679-...",
            "name": "Tuesday practice",
            "items": [{"item_type": "drill", "drill_id": "..."}]
        }
    """

    owner_user_id: UUIDStr
    org_id: OptionalUUIDStr = None
    type: PlanListType = "custom"
    name: TrimmedStr = Field(..., min_length=1, max_length=200)
    description: TrimmedStr | None = Field(default=None, max_length=4000)
    visibility: PlanVisibility | None = None
    status: PlanStatus | None = None
    tags: list[TrimmedStr] = Field(default_factory=list)
    estimated_minutes: int | None = Field(default=None, ge=0)
    items: list[PlanItemInput] = Field(..., min_length=1, description="At least one item")


class UpdatePlanRequest(BaseModel):
    """
    Schema for patching a plan.

    Only provided fields are written. Items can be appended (add_items) or
    removed (remove_item_ids) in the same request.
    """

    name: TrimmedStr | None = Field(default=None, min_length=1, max_length=200)
    description: TrimmedStr | None = Field(default=None, max_length=4000)
    visibility: PlanVisibility | None = None
    status: PlanStatus | None = None
    tags: list[TrimmedStr] | None = None
    estimated_minutes: int | None = Field(default=None, ge=0)
    org_id: OptionalUUIDStr = None
    add_items: list[PlanItemInput] = Field(default_factory=list)
    remove_item_ids: list[UUIDStr] = Field(default_factory=list)

    @model_validator(mode="after")
    def _require_changes(self) -> "UpdatePlanRequest":
        if not self.plan_patch() and not self.add_items and not self.remove_item_ids:
            raise ValueError("No updates provided")
        return self

    def plan_patch(self) -> dict[str, Any]:
        """Columns to update on practice_plans (explicitly sent fields only)."""
        patch: dict[str, Any] = {}
        for field in ("name", "description", "visibility", "status", "tags", "estimated_minutes", "org_id"):
            if field not in self.model_fields_set:
                continue
            value = getattr(self, field)
            if isinstance(value, Enum):
                value = value.value
            if field == "tags" and value is None:
                value = []
            patch[field] = value
        if patch.get("name") is None:
            patch.pop("name", None)
        return patch


class InvitePlanMembersRequest(BaseModel):
    """Invite org athletes/coaches to a plan."""

    user_ids: list[UUIDStr] = Field(..., min_length=1, description="Users to invite")
    role: TrimmedStr = Field(default="viewer", min_length=1)
    added_by: OptionalUUIDStr = None

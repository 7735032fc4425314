# =============================================================================
# core/models/drill.py - Drill Schemas
# =============================================================================
# A drill is a practice exercise inside a segment (warm-up, shooting, ...)
# with optional media and skill tags.
# =============================================================================

import math
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, field_validator

from .common import MediaType, OptionalUUIDStr, TrimmedStr, UrlStr, UUIDStr
from lib.utils import unique


def _skill_tag_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("skill_id")
    return value


# Skill tags can be sent as "uuid" or {"skill_id": "uuid"}
SkillTagId = Annotated[UUIDStr, BeforeValidator(_skill_tag_id)]


class DrillMediaInput(BaseModel):
    """One media item sent with a new drill."""
    type: MediaType = MediaType.IMAGE
    url: UrlStr
    title: TrimmedStr | None = Field(default=None, max_length=200)
    description: TrimmedStr | None = Field(default=None, max_length=4000)
    thumbnail_url: UrlStr | None = None


class CreateDrillRequest(BaseModel):
    """
    Schema for creating a drill.

    Media positions default to index + 1 and skill tags are de-duplicated
    before the payload goes to rpc_create_drill.
    """

    org_id: UUIDStr
    segment_id: UUIDStr
    sport_id: OptionalUUIDStr = None
    name: TrimmedStr = Field(default="", max_length=200, validate_default=True)
    description: TrimmedStr | None = Field(default=None, max_length=4000)
    instructions: TrimmedStr | None = Field(default=None, max_length=4000)
    level: TrimmedStr | None = Field(default=None, max_length=50)
    min_age: int | None = Field(default=None, ge=0)
    max_age: int | None = Field(default=None, ge=0)
    duration_seconds: int | None = Field(default=None, gt=0)
    created_by: OptionalUUIDStr = None
    media: list[DrillMediaInput] = Field(default_factory=list)
    skill_tags: list[SkillTagId] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        if not value:
            raise ValueError("name is required")
        return value

    def rpc_params(self) -> dict[str, Any]:
        """Arguments for rpc_create_drill (p_drill, p_media, p_skill_tags)."""
        drill = self.model_dump(exclude={"media", "skill_tags"})
        media = [
            {**item.model_dump(mode="json"), "position": index + 1}
            for index, item in enumerate(self.media)
        ]
        skill_tags = [{"skill_id": skill_id} for skill_id in unique(self.skill_tags)]
        return {"p_drill": drill, "p_media": media, "p_skill_tags": skill_tags}


class UpdateDrillRequest(BaseModel):
    """
    Patch a drill.

    instructions is stored as coaching_points; duration_seconds is rounded up
    to whole minutes unless duration_min is sent.
    """

    name: TrimmedStr | None = Field(default=None, min_length=1, max_length=200)
    description: TrimmedStr | None = Field(default=None, max_length=4000)
    instructions: TrimmedStr | None = Field(default=None, max_length=4000)
    level: TrimmedStr | None = Field(default=None, max_length=50)
    segment_id: OptionalUUIDStr = None
    min_age: int | None = Field(default=None, ge=0)
    max_age: int | None = Field(default=None, ge=0)
    min_players: int | None = Field(default=None, ge=0)
    max_players: int | None = Field(default=None, ge=0)
    duration_seconds: int | None = Field(default=None, gt=0)
    duration_min: int | None = Field(default=None, gt=0)
    visibility: TrimmedStr | None = Field(default=None, min_length=1, max_length=50)
    is_archived: bool | None = None
    add_tag_ids: list[UUIDStr] = Field(default_factory=list)
    remove_tag_ids: list[UUIDStr] = Field(default_factory=list)

    def patch(self) -> dict[str, Any]:
        """Columns to update on drills (explicitly sent fields only)."""
        sent = self.model_fields_set
        patch: dict[str, Any] = {}
        for field in (
            "name", "description", "level", "segment_id", "min_age", "max_age",
            "min_players", "max_players", "visibility", "is_archived",
        ):
            if field in sent:
                patch[field] = getattr(self, field)
        if patch.get("name", "") is None:
            patch.pop("name")
        if patch.get("is_archived", False) is None:
            patch.pop("is_archived")

        if "instructions" in sent:
            patch["coaching_points"] = self.instructions
        if "duration_min" in sent:
            patch["duration_min"] = self.duration_min
        elif "duration_seconds" in sent:
            patch["duration_min"] = (
                math.ceil(self.duration_seconds / 60) if self.duration_seconds else None
            )
        return patch

    def tags_to_add(self) -> list[str]:
        return unique(self.add_tag_ids)

    def tags_to_remove(self) -> list[str]:
        adding = set(self.add_tag_ids)
        return [tag_id for tag_id in unique(self.remove_tag_ids) if tag_id not in adding]

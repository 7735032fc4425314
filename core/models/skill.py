# =============================================================================
# core/models/skill.py - Skill Schemas
# =============================================================================
# Skills are the org's catalogue of techniques (grouped by category) that
# scorecard subskills and training videos point at.
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from .common import OptionalUUIDStr, TrimmedStr, UUIDStr


class _SkillFields(BaseModel):
    sport_id: OptionalUUIDStr = None
    description: TrimmedStr | None = Field(default=None, max_length=4000)
    level: TrimmedStr | None = Field(default=None, max_length=50)
    visibility: TrimmedStr | None = Field(default=None, max_length=50)
    status: TrimmedStr | None = Field(default=None, max_length=50)


class CreateSkillRequest(_SkillFields):
    """Schema for creating a skill."""

    org_id: UUIDStr
    category: TrimmedStr = Field(default="", max_length=120, validate_default=True)
    title: TrimmedStr = Field(default="", max_length=200, validate_default=True)

    @field_validator("category", "title")
    @classmethod
    def _required(cls, value: str, info) -> str:
        if not value:
            raise ValueError(f"{info.field_name} is required")
        return value

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class UpdateSkillRequest(_SkillFields):
    """Patch a skill; only sent fields are written."""

    category: TrimmedStr | None = Field(default=None, min_length=1, max_length=120)
    title: TrimmedStr | None = Field(default=None, min_length=1, max_length=200)

    @model_validator(mode="after")
    def _require_changes(self) -> "UpdateSkillRequest":
        if not self.patch():
            raise ValueError("No updates provided")
        return self

    def patch(self) -> dict[str, Any]:
        patch = {field: getattr(self, field) for field in self.model_fields_set}
        # category/title are NOT NULL columns
        for field in ("category", "title"):
            if field in patch and patch[field] is None:
                patch.pop(field)
        return patch

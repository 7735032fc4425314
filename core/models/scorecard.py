# =============================================================================
# core/models/scorecard.py - Scorecard Template Schemas
# =============================================================================
# A scorecard template is a two-level tree: categories, each holding
# subskills that point at org skills. Coaches rate athletes against it.
# =============================================================================

from typing import Any

from pydantic import BaseModel, Field

from .common import OptionalUUIDStr, TrimmedStr, UUIDStr


class SubskillInput(BaseModel):
    name: TrimmedStr = Field(..., min_length=1)
    description: str | None = None
    position: int | None = Field(default=None, gt=0)
    skill_id: UUIDStr


class CategoryInput(BaseModel):
    name: TrimmedStr = Field(..., min_length=1)
    description: str | None = None
    position: int | None = Field(default=None, gt=0)
    subskills: list[SubskillInput] = Field(..., min_length=1)


class CreateScorecardTemplateRequest(BaseModel):
    """
    Schema for creating a scorecard template with its categories.

    Example:
        {
            "org_id": "7c9e6679-...",
            "name": "Spring tryouts",
            "categories": [
                {"name": "Offense", "subskills": [{"name": "Dodging", "skill_id": "..."}]}
            ]
        }
    """

    org_id: UUIDStr
    sport_id: OptionalUUIDStr = None
    name: TrimmedStr = Field(..., min_length=1)
    description: str | None = None
    is_active: bool = Field(default=True, alias="isActive")
    categories: list[CategoryInput] = Field(..., min_length=1)

    model_config = {"populate_by_name": True}

    def template_payload(self) -> dict[str, Any]:
        """The p_template argument; positions default to index + 1."""
        return {
            "org_id": self.org_id,
            "sport_id": self.sport_id,
            "name": self.name,
            "description": self.description,
            "isActive": self.is_active,
            "categories": [
                {
                    "name": category.name,
                    "description": category.description,
                    "position": category.position or index + 1,
                    "subskills": [
                        {
                            "name": subskill.name,
                            "description": subskill.description,
                            "position": subskill.position or sub_index + 1,
                            "skill_id": subskill.skill_id,
                        }
                        for sub_index, subskill in enumerate(category.subskills)
                    ],
                }
                for index, category in enumerate(self.categories)
            ],
        }

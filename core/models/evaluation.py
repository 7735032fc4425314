# =============================================================================
# core/models/evaluation.py - Evaluation Schemas
# =============================================================================
# An evaluation is one coach scoring a set of athletes against a scorecard
# template. Ratings live in evaluation_items, one row per
# (evaluation, athlete, subskill).
#
# Two write paths:
# - Bulk create: many evaluations at once (validated item by item so errors
#   point at evaluations[i].evaluation_items[j])
# - Matrix update: an ordered list of operations on one evaluation's grid
# =============================================================================

import math
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from .common import OptionalUUIDStr, UUIDStr


# -----------------------------------------------------------------------------
# Bulk create
# -----------------------------------------------------------------------------

class EvaluationItemInput(BaseModel):
    athlete_id: str
    skill_id: str
    rating: float
    comments: str | None = None


class EvaluationInput(BaseModel):
    org_id: str
    scorecard_template_id: str
    team_id: str | None = None
    coach_id: str
    notes: str | None = None
    evaluation_items: list[EvaluationItemInput]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _optional_text(value: Any) -> str | None:
    return None if value is None else str(value)


def parse_evaluation_item(raw: Any, eval_index: int, item_index: int) -> EvaluationItemInput:
    """
    Validate one rating of a bulk evaluation.

    Raises:
        ValueError: With an indexed message, e.g.
            "evaluations[0].evaluation_items[1].rating must be between 1 and 5"
    """
    where = f"evaluations[{eval_index}].evaluation_items[{item_index}]"
    if not isinstance(raw, dict):
        raise ValueError(f"{where} must be an object")

    for field in ("athlete_id", "skill_id"):
        value = raw.get(field)
        if not value or not isinstance(value, str):
            raise ValueError(f"{where}.{field} is required (string)")

    rating = raw.get("rating")
    if not _is_number(rating):
        raise ValueError(f"{where}.rating must be a number")
    if rating < 1 or rating > 5:
        raise ValueError(f"{where}.rating must be between 1 and 5")

    return EvaluationItemInput(
        athlete_id=raw["athlete_id"],
        skill_id=raw["skill_id"],
        rating=rating,
        comments=_optional_text(raw.get("comments")),
    )


def parse_evaluation(raw: Any, index: int) -> EvaluationInput:
    """Validate one evaluation of a bulk payload (see parse_evaluation_item)."""
    if not isinstance(raw, dict):
        raise ValueError(f"evaluations[{index}] must be an object")

    for field in ("org_id", "scorecard_template_id", "coach_id", "evaluation_items"):
        if raw.get(field) is None:
            raise ValueError(f"evaluations[{index}].{field} is required")

    items = raw["evaluation_items"]
    if not isinstance(items, list) or not items:
        raise ValueError(f"evaluations[{index}].evaluation_items must be a non-empty array")

    team_id = raw.get("team_id")
    return EvaluationInput(
        org_id=str(raw["org_id"]),
        scorecard_template_id=str(raw["scorecard_template_id"]),
        team_id=None if team_id in (None, "") else str(team_id),
        coach_id=str(raw["coach_id"]),
        notes=_optional_text(raw.get("notes")),
        evaluation_items=[
            parse_evaluation_item(item, index, item_index)
            for item_index, item in enumerate(items)
        ],
    )


def parse_bulk_evaluations(body: Any) -> list[EvaluationInput]:
    """Validate a bulk-create body: {"evaluations": [...]}."""
    evaluations = body.get("evaluations") if isinstance(body, dict) else None
    if not isinstance(evaluations, list) or not evaluations:
        raise ValueError("Body must contain an 'evaluations' array.")
    return [parse_evaluation(raw, index) for index, raw in enumerate(evaluations)]


# -----------------------------------------------------------------------------
# Matrix update
# -----------------------------------------------------------------------------

class UpsertRatingOperation(BaseModel):
    """Set (or clear, with a null or non-numeric rating) one athlete's subskill rating."""
    type: Literal["upsert_rating"]
    athlete_id: UUIDStr
    subskill_id: UUIDStr
    rating: float | None = None
    comments: str | None = None

    @field_validator("rating", mode="before")
    @classmethod
    def _unreadable_rating_clears(cls, value: Any) -> Any:
        """A rating that isn't a number (e.g. "abc") clears the cell."""
        if value is None or isinstance(value, (int, float)):
            return value
        try:
            return float(str(value).strip())
        except ValueError:
            return math.nan

    @property
    def clears_rating(self) -> bool:
        return self.rating is None or not math.isfinite(self.rating)


class RemoveAthleteOperation(BaseModel):
    """Drop every rating of one athlete from the evaluation."""
    type: Literal["remove_athlete"]
    athlete_id: UUIDStr


MatrixOperation = Annotated[
    Union[UpsertRatingOperation, RemoveAthleteOperation],
    Field(discriminator="type"),
]


class EvaluationMatrixUpdate(BaseModel):
    """
    Body of PATCH /evaluations/eval/{id}/matrix.

    Header fields are only written when present in the body; team_id is
    stored in the teams_id column.
    """

    org_id: UUIDStr
    template_id: OptionalUUIDStr = None
    team_id: OptionalUUIDStr = None
    coach_id: OptionalUUIDStr = None
    notes: str | None = None
    operations: list[MatrixOperation]

    @model_validator(mode="before")
    @classmethod
    def _check_operations(cls, data: Any) -> Any:
        if isinstance(data, dict):
            operations = data.get("operations")
            if not isinstance(operations, list):
                raise ValueError("Body must include an 'operations' array")
            if not operations:
                raise ValueError("'operations' array must not be empty")
        return data

    def header_patch(self) -> dict[str, Any]:
        patch: dict[str, Any] = {"org_id": self.org_id}
        sent = self.model_fields_set
        if "template_id" in sent:
            patch["template_id"] = self.template_id
        if "team_id" in sent:
            patch["teams_id"] = self.team_id
        if "coach_id" in sent:
            patch["coach_id"] = self.coach_id
        if "notes" in sent:
            patch["notes"] = self.notes
        return patch

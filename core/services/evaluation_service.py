# =============================================================================
# core/services/evaluation_service.py - Evaluation Operations
# =============================================================================
# Evaluations are created in bulk by evaluations_bulk_create_tx and then
# edited cell by cell through the matrix updater. Ratings are stored in
# evaluation_items keyed by (evaluation_id, athlete_id, subskill_id).
#
# Column names differ from the API names:
#   template_id  <-> scorecard_template_id
#   teams_id     <-> team_id
#   subskill_id  <-> skill_id      (items)
#   comment      <-> comments      (items)
#
# Per-athlete views (improvement skills, skill videos, subskill ratings)
# join evaluation_items to skills by hand: subskill_id holds a skills.id that
# must also appear in scorecard_subskills.skill_id.
# =============================================================================

import logging
import math
from typing import Any

from lib.supabase_client import SupabaseClient
from lib.utils import format_evaluation_date, parse_timestamp, unique
from core.models.evaluation import (
    EvaluationInput,
    EvaluationMatrixUpdate,
    RemoveAthleteOperation,
)
from app.exceptions import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)

# Ratings below this are "needs improvement"
IMPROVEMENT_RATING_MAX = 3

LIST_SELECT = (
    "id, org_id, template_id, teams_id, coach_id, notes, created_at, status, "
    "team:teams!inner(id, name), template:scorecard_templates!inner(id, name)"
)
DETAIL_SELECT = (
    "id, org_id, template_id, coach_id, teams_id, notes, created_at, status, "
    "teams:teams_id(id, name), "
    "scorecard_templates:template_id(id, name, "
    "scorecard_categories(id, template_id, name, description, position)), "
    "evaluation_items(id, evaluation_id, athlete_id, subskill_id, rating, comment, created_at, "
    "athletes:athlete_id(id, first_name, last_name))"
)
ATHLETE_ITEMS_SELECT = (
    "id, created_at, template:scorecard_templates!inner(id), "
    "evaluation_items!inner(evaluation_id, athlete_id, subskill_id, rating)"
)
PROGRESS_SELECT = (
    "id, org_id, evaluation_id, athlete_id, progress, level, "
    "organizations!inner(maxWorkoutReps)"
)


class EvaluationNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("Evaluation not found", code="EVALUATION_NOT_FOUND")


# -----------------------------------------------------------------------------
# Row Mappers
# -----------------------------------------------------------------------------

def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    return [value] if value else []


def _as_one(value: Any) -> dict[str, Any]:
    if isinstance(value, list):
        return value[0] if value else {}
    return value or {}


def _finite_number(value: Any) -> float | int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if math.isfinite(value) else None


def _newest_first(rows: list[dict[str, Any]], key: str = "created_at") -> list[dict[str, Any]]:
    """Sort by a timestamp column, newest first; unparseable timestamps sort last."""
    def timestamp(row: dict[str, Any]) -> float:
        parsed = parse_timestamp(row.get(key))
        return parsed.timestamp() if parsed else 0.0
    return sorted(rows, key=timestamp, reverse=True)


def map_created_evaluation(row: dict[str, Any]) -> dict[str, Any]:
    """Map an evaluations_bulk_create_tx row back to API field names."""
    evaluation = {
        key: value for key, value in row.items()
        if key not in ("template_id", "teams_id", "evaluation_items")
    }
    items = []
    for item in row.get("evaluation_items") or []:
        mapped = {key: value for key, value in item.items() if key not in ("subskill_id", "comment")}
        mapped["skill_id"] = item.get("subskill_id")
        mapped["comments"] = item.get("comment")
        items.append(mapped)

    evaluation["scorecard_template_id"] = row.get("template_id")
    evaluation["team_id"] = row.get("teams_id")
    evaluation["evaluation_items"] = items
    return evaluation


def map_evaluation_list_row(row: dict[str, Any]) -> dict[str, Any]:
    evaluation = {
        key: value for key, value in row.items()
        if key not in ("template_id", "team", "template")
    }
    evaluation["scorecard_template_id"] = row.get("template_id")
    evaluation["scorecard_template_name"] = _as_one(row.get("template")).get("name")
    evaluation["team_name"] = _as_one(row.get("team")).get("name")
    return evaluation


def map_evaluation_detail(row: dict[str, Any]) -> dict[str, Any]:
    """
    Map an evaluation with its items and template categories.

    athletes lists each rated athlete once, in order of first appearance.
    """
    team = _as_one(row.get("teams"))
    template = _as_one(row.get("scorecard_templates"))

    athletes: dict[str, dict[str, Any]] = {}
    items = []
    for item in row.get("evaluation_items") or []:
        athlete = _as_one(item.get("athletes"))
        athlete_id = athlete.get("id")
        if athlete_id and athlete_id not in athletes:
            athletes[athlete_id] = {
                "id": athlete_id,
                "first_name": athlete.get("first_name"),
                "last_name": athlete.get("last_name"),
            }
        items.append({
            "id": item.get("id"),
            "evaluation_id": item.get("evaluation_id"),
            "athlete_id": item.get("athlete_id"),
            "athlete_first_name": athlete.get("first_name"),
            "athlete_last_name": athlete.get("last_name"),
            "subskill_id": item.get("subskill_id"),
            "rating": item.get("rating"),
            "comment": item.get("comment"),
            "created_at": item.get("created_at"),
        })

    categories = [
        {
            "id": category.get("id"),
            "template_id": category.get("template_id"),
            "name": category.get("name"),
            "description": category.get("description"),
            "position": category.get("position"),
        }
        for category in template.get("scorecard_categories") or []
    ]

    return {
        "id": row.get("id"),
        "org_id": row.get("org_id"),
        "template_id": row.get("template_id"),
        "template_name": template.get("name"),
        "coach_id": row.get("coach_id"),
        "teams_id": row.get("teams_id"),
        "team_name": team.get("name"),
        "notes": row.get("notes"),
        "created_at": row.get("created_at"),
        "evaluation_items": items,
        "athletes": list(athletes.values()),
        "categories": categories,
    }


def map_progress_row(row: dict[str, Any]) -> dict[str, Any]:
    organization = _as_one(row.get("organizations"))
    return {
        "id": row.get("id"),
        "org_id": row.get("org_id"),
        "evaluation_id": row.get("evaluation_id"),
        "athlete_id": row.get("athlete_id"),
        "progress": row.get("progress"),
        "level": row.get("level"),
        "maxWorkoutReps": organization.get("maxWorkoutReps"),
    }


def next_workout_step(progress: Any, level: Any, max_reps: int | float) -> tuple[int, int]:
    """
    Advance workout progress by one rep.

    Reaching max_reps resets progress to 0 and moves up one level.

    Example:
        next_workout_step(2, 1, 3)  # (0, 2)
        next_workout_step(0, 1, 3)  # (1, 1)
    """
    progress_value = _finite_number(progress) or 0
    level_value = _finite_number(level) or 0
    next_progress = progress_value + 1
    if next_progress >= max_reps:
        return 0, level_value + 1
    return next_progress, level_value


# -----------------------------------------------------------------------------
# Service
# -----------------------------------------------------------------------------

class EvaluationService:
    """
    Service for evaluation operations.
    """

    @staticmethod
    def bulk_create(evaluations: list[EvaluationInput]) -> list[dict[str, Any]]:
        """
        Create evaluations with their items in one transaction.

        Returns:
            Created evaluations with API field names
        """
        rows = SupabaseClient.call_rpc(
            "evaluations_bulk_create_tx",
            {"evaluations": [evaluation.model_dump() for evaluation in evaluations]},
        )
        created = [map_created_evaluation(row) for row in rows or []]
        logger.info(f"Bulk-created {len(created)} evaluations")
        return created

    @staticmethod
    def list_open(org_id: str) -> list[dict[str, Any]]:
        """Evaluations of the org that aren't completed, newest first."""
        client = SupabaseClient.get_client()
        rows = SupabaseClient.fetch_all(
            client.table("evaluations")
            .select(LIST_SELECT)
            .eq("org_id", org_id)
            .neq("status", "completed")
            .order("created_at", desc=True),
            action="list evaluations",
        )
        return [map_evaluation_list_row(row) for row in rows]

    @staticmethod
    def get_detail(evaluation_id: str, org_id: str) -> dict[str, Any]:
        """
        Get an evaluation with items, athletes and categories.

        Raises:
            EvaluationNotFoundError: If the evaluation isn't in the org
        """
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("evaluations")
            .select(DETAIL_SELECT)
            .eq("id", evaluation_id)
            .eq("org_id", org_id),
            action="get evaluation",
        )
        if not row:
            raise EvaluationNotFoundError()
        return map_evaluation_detail(row)

    @staticmethod
    def apply_matrix_update(evaluation_id: str, update: EvaluationMatrixUpdate) -> dict[str, Any]:
        """
        Patch the evaluation header, then apply the operations in order.

        - remove_athlete deletes every item of the athlete
        - upsert_rating with a null, NaN or non-numeric rating deletes the cell
        - upsert_rating with a rating updates the cell, or inserts it

        Returns:
            The evaluation detail after the update

        Raises:
            EvaluationNotFoundError: If the evaluation isn't in the org
        """
        client = SupabaseClient.get_client()
        org_id = update.org_id

        existing = SupabaseClient.fetch_one(
            client.table("evaluations").select("id").eq("id", evaluation_id).eq("org_id", org_id),
            action="check evaluation",
        )
        if not existing:
            raise EvaluationNotFoundError()

        SupabaseClient.execute(
            client.table("evaluations")
            .update(update.header_patch())
            .eq("id", evaluation_id)
            .eq("org_id", org_id),
            action="update evaluation header",
        )

        for operation in update.operations:
            if isinstance(operation, RemoveAthleteOperation):
                SupabaseClient.execute(
                    client.table("evaluation_items")
                    .delete()
                    .eq("evaluation_id", evaluation_id)
                    .eq("athlete_id", operation.athlete_id),
                    action="remove athlete from evaluation",
                )
                continue

            if operation.clears_rating:
                SupabaseClient.execute(
                    client.table("evaluation_items")
                    .delete()
                    .eq("evaluation_id", evaluation_id)
                    .eq("athlete_id", operation.athlete_id)
                    .eq("subskill_id", operation.subskill_id),
                    action="clear evaluation rating",
                )
                continue

            item = SupabaseClient.fetch_one(
                client.table("evaluation_items")
                .select("id")
                .eq("evaluation_id", evaluation_id)
                .eq("athlete_id", operation.athlete_id)
                .eq("subskill_id", operation.subskill_id),
                action="find evaluation rating",
            )
            if item:
                SupabaseClient.execute(
                    client.table("evaluation_items")
                    .update({"rating": operation.rating, "comment": operation.comments})
                    .eq("id", item["id"]),
                    action="update evaluation rating",
                )
            else:
                SupabaseClient.execute(
                    client.table("evaluation_items").insert({
                        "evaluation_id": evaluation_id,
                        "athlete_id": operation.athlete_id,
                        "subskill_id": operation.subskill_id,
                        "rating": operation.rating,
                        "comment": operation.comments,
                        "recommended_skill_id": None,
                    }),
                    action="insert evaluation rating",
                )

        logger.info(f"Applied {len(update.operations)} matrix operations to evaluation {evaluation_id}")
        return EvaluationService.get_detail(evaluation_id, org_id)

    @staticmethod
    def submit(evaluation_id: str, org_id: str) -> dict[str, Any]:
        """
        Mark an evaluation completed.

        Only not_started and in_progress evaluations change; otherwise the
        current {id, status} is returned unchanged.

        Raises:
            EvaluationNotFoundError: If the evaluation isn't in the org
        """
        client = SupabaseClient.get_client()
        updated = SupabaseClient.fetch_all(
            client.table("evaluations")
            .update({"status": "completed"})
            .eq("id", evaluation_id)
            .eq("org_id", org_id)
            .in_("status", ["not_started", "in_progress"]),
            action="submit evaluation",
        )
        if updated:
            logger.info(f"Submitted evaluation {evaluation_id}")
            return {"id": updated[0].get("id"), "status": updated[0].get("status")}

        rows = SupabaseClient.fetch_all(
            client.table("evaluations").select("id, status").eq("id", evaluation_id).eq("org_id", org_id),
            action="load evaluation status",
        )
        if not rows:
            raise EvaluationNotFoundError()
        return {"id": rows[0].get("id"), "status": rows[0].get("status")}

    # -------------------------------------------------------------------------
    # Athlete listings
    # -------------------------------------------------------------------------

    @staticmethod
    def list_latest_for_athlete(
        org_id: str,
        athlete_id: str,
        scorecard_name: str | None = None,
        coach_id: str | None = None,
        coach_name: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """
        An athlete's evaluations, one row per evaluation, newest first.

        coach_id wins over coach_name. Dates are ISO timestamps.
        """
        client = SupabaseClient.get_client()
        query = (
            client.table("evaluation_items")
            .select(
                "evaluation_id, "
                "evaluation:evaluations!inner(id, org_id, created_at, "
                "coach:coaches!inner(id, full_name), "
                "scorecard_template:scorecard_templates!inner(id, name)), "
                "athlete:athletes!inner(id, full_name)"
            )
            .eq("athlete_id", athlete_id)
            .eq("evaluation.org_id", org_id)
        )
        if scorecard_name:
            query = query.ilike("evaluation.scorecard_template.name", f"%{scorecard_name}%")
        if coach_id:
            query = query.eq("evaluation.coach_id", coach_id)
        elif coach_name:
            query = query.ilike("evaluation.coach.full_name", f"%{coach_name}%")
        if date_from:
            query = query.gte("evaluation.created_at", date_from)
        if date_to:
            query = query.lte("evaluation.created_at", date_to)

        grouped: dict[tuple[str, str], dict[str, Any]] = {}
        for row in SupabaseClient.fetch_all(query, action="list latest evaluations"):
            evaluation = _as_one(row.get("evaluation"))
            if not evaluation or (evaluation.get("org_id") and evaluation.get("org_id") != org_id):
                continue
            athlete = _as_one(row.get("athlete"))
            row_athlete_id = athlete.get("id") or athlete_id
            row_evaluation_id = row.get("evaluation_id") or evaluation.get("id")
            if not row_evaluation_id:
                continue
            key = (row_evaluation_id, row_athlete_id)
            if key in grouped:
                continue
            grouped[key] = {
                "evaluation_id": row_evaluation_id,
                "created_at": evaluation.get("created_at"),
                "scorecard_name": _as_one(evaluation.get("scorecard_template")).get("name"),
                "coach_name": _as_one(evaluation.get("coach")).get("full_name"),
                "athlete_id": row_athlete_id,
                "athlete_full_name": athlete.get("full_name"),
            }

        rows = _newest_first(list(grouped.values()))
        page = rows[offset:offset + limit]
        return [_with_date(row) for row in page], len(rows)

    @staticmethod
    def list_evaluation_athletes(
        org_id: str,
        evaluation_id: str,
        athlete_id: str | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """The unique athletes rated in an evaluation of the org."""
        client = SupabaseClient.get_client()
        query = (
            client.table("evaluation_items")
            .select(
                "evaluation_id, "
                "evaluation:evaluation_id(id, org_id, created_at, "
                "coach:coach_id(id, full_name), scorecard_template:template_id(id, name)), "
                "athlete:athlete_id(id, full_name)"
            )
            .eq("evaluation_id", evaluation_id)
        )
        if athlete_id:
            query = query.eq("athlete_id", athlete_id)

        rows = [
            row for row in SupabaseClient.fetch_all(query, action="list evaluation athletes")
            if _as_one(row.get("evaluation")).get("org_id") == org_id
        ]
        if not rows:
            return [], 0

        athletes: dict[str, str | None] = {}
        for row in rows:
            athlete = _as_one(row.get("athlete"))
            if athlete.get("id") and athlete["id"] not in athletes:
                athletes[athlete["id"]] = athlete.get("full_name")

        evaluation = _as_one(rows[0].get("evaluation"))
        items = [
            {
                "evaluation_id": evaluation.get("id") or evaluation_id,
                "created_at": evaluation.get("created_at"),
                "scorecard_name": _as_one(evaluation.get("scorecard_template")).get("name"),
                "coach_name": _as_one(evaluation.get("coach")).get("full_name"),
                "athlete_id": athlete_key,
                "athlete_full_name": full_name,
                "athletes_name": full_name,
            }
            for athlete_key, full_name in athletes.items()
        ]
        page = items[offset:offset + limit]
        return [_with_date(row) for row in page], len(items)

    # -------------------------------------------------------------------------
    # Per-athlete skill views
    # -------------------------------------------------------------------------

    @staticmethod
    def _athlete_ratings(
        org_id: str,
        evaluation_id: str,
        athlete_id: str,
        rating_max: int | None = None,
    ) -> list[dict[str, Any]]:
        """The athlete's rated items in an evaluation, optionally below rating_max."""
        client = SupabaseClient.get_client()
        query = (
            client.table("evaluations")
            .select(ATHLETE_ITEMS_SELECT)
            .eq("id", evaluation_id)
            .eq("org_id", org_id)
            .eq("evaluation_items.athlete_id", athlete_id)
        )
        if rating_max is not None:
            query = query.lt("evaluation_items.rating", rating_max)
        query = query.order("created_at", desc=True)

        items = []
        for row in SupabaseClient.fetch_all(query, action="load athlete ratings"):
            for item in _as_list(row.get("evaluation_items")):
                if not item.get("subskill_id"):
                    continue
                items.append({
                    "evaluation_id": item.get("evaluation_id") or row.get("id") or evaluation_id,
                    "skill_id": item["subskill_id"],
                    "rating": item.get("rating"),
                    "created_at": row.get("created_at"),
                })
        return items

    @staticmethod
    def _scorecard_skill_titles(skill_ids: list[str]) -> dict[str, str | None]:
        """Titles of the skills that are used by a scorecard subskill."""
        if not skill_ids:
            return {}
        client = SupabaseClient.get_client()
        subskills = SupabaseClient.fetch_all(
            client.table("scorecard_subskills").select("skill_id").in_("skill_id", skill_ids),
            action="load scorecard subskills",
        )
        used = unique(row["skill_id"] for row in subskills if row.get("skill_id"))
        if not used:
            return {}
        skills = SupabaseClient.fetch_all(
            client.table("skills").select("id, title").in_("id", used),
            action="load skill titles",
        )
        return {row["id"]: row.get("title") for row in skills if row.get("id")}

    @staticmethod
    def list_improvement_skills(
        org_id: str,
        evaluation_id: str,
        athlete_id: str,
        limit: int = 3,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """Skills the athlete was rated below 3 on."""
        items = EvaluationService._athlete_ratings(
            org_id, evaluation_id, athlete_id, IMPROVEMENT_RATING_MAX
        )
        titles = EvaluationService._scorecard_skill_titles(unique(item["skill_id"] for item in items))
        rows = _newest_first([
            {
                "evaluation_id": item["evaluation_id"],
                "skill_id": item["skill_id"],
                "skill_name": titles[item["skill_id"]],
                "rating": item["rating"],
                "created_at": item["created_at"],
            }
            for item in items if item["skill_id"] in titles
        ])
        page = [_without_created_at(row) for row in rows[offset:offset + limit]]
        return page, len(rows)

    @staticmethod
    def list_skill_videos(org_id: str, evaluation_id: str, athlete_id: str) -> list[dict[str, Any]]:
        """One row per video mapped to a skill the athlete was rated below 3 on."""
        items = EvaluationService._athlete_ratings(
            org_id, evaluation_id, athlete_id, IMPROVEMENT_RATING_MAX
        )
        titles = EvaluationService._scorecard_skill_titles(unique(item["skill_id"] for item in items))
        if not titles:
            return []

        client = SupabaseClient.get_client()
        video_rows = SupabaseClient.fetch_all(
            client.table("skill_video_map").select("skill_id, object_path").in_("skill_id", list(titles)),
            action="load skill videos",
        )
        videos: dict[str, list[str | None]] = {}
        for row in video_rows:
            if row.get("skill_id"):
                videos.setdefault(row["skill_id"], []).append(row.get("object_path"))

        rows = [
            {
                "evaluation_id": item["evaluation_id"],
                "skill_id": item["skill_id"],
                "title": titles[item["skill_id"]],
                "object_path": object_path,
                "rating": item["rating"],
                "created_at": item["created_at"],
            }
            for item in items if item["skill_id"] in titles
            for object_path in videos.get(item["skill_id"], [])
        ]
        return [_without_created_at(row) for row in _newest_first(rows)]

    @staticmethod
    def list_subskill_ratings(org_id: str, evaluation_id: str, athlete_id: str) -> list[dict[str, Any]]:
        """
        The athlete's ratings grouped by scorecard category.

        Returns:
            [{id, name, subskills: [{id, name, score}]}]; unrated cells are skipped
        """
        items = _newest_first(EvaluationService._athlete_ratings(org_id, evaluation_id, athlete_id))
        skill_ids = unique(item["skill_id"] for item in items)
        if not skill_ids:
            return []

        client = SupabaseClient.get_client()
        subskills = SupabaseClient.fetch_all(
            client.table("scorecard_subskills").select("skill_id, category_id").in_("skill_id", skill_ids),
            action="load scorecard subskills",
        )
        categories_by_skill: dict[str, list[str]] = {}
        for row in subskills:
            if row.get("skill_id") and row.get("category_id"):
                categories = categories_by_skill.setdefault(row["skill_id"], [])
                if row["category_id"] not in categories:
                    categories.append(row["category_id"])
        if not categories_by_skill:
            return []

        skills = SupabaseClient.fetch_all(
            client.table("skills").select("id, title").in_("id", list(categories_by_skill)),
            action="load skill titles",
        )
        titles = {row["id"]: row.get("title") for row in skills if row.get("id")}

        category_ids = unique(cid for cids in categories_by_skill.values() for cid in cids)
        category_rows = SupabaseClient.fetch_all(
            client.table("scorecard_categories").select("id, name").in_("id", category_ids),
            action="load scorecard categories",
        )
        category_names = {row["id"]: row.get("name") for row in category_rows if row.get("id")}

        grouped: dict[str, dict[str, Any]] = {}
        for item in items:
            if item["skill_id"] not in titles:
                continue
            for category_id in categories_by_skill.get(item["skill_id"], []):
                if category_id not in category_names:
                    continue
                category = grouped.setdefault(category_id, {
                    "id": category_id,
                    "name": category_names[category_id] or "",
                    "subskills": [],
                })
                score = _finite_number(item["rating"])
                if score is None:
                    continue
                category["subskills"].append({
                    "id": item["skill_id"],
                    "name": titles[item["skill_id"]] or "",
                    "score": score,
                })
        return list(grouped.values())

    # -------------------------------------------------------------------------
    # Workouts
    # -------------------------------------------------------------------------

    @staticmethod
    def list_workout_progress(
        org_id: str,
        athlete_id: str,
        evaluation_id: str | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        client = SupabaseClient.get_client()
        query = (
            client.table("evaluation_workout_progress")
            .select(PROGRESS_SELECT, count="exact")
            .eq("org_id", org_id)
            .eq("athlete_id", athlete_id)
        )
        if evaluation_id:
            query = query.eq("evaluation_id", evaluation_id)
        query = query.range(offset, offset + limit - 1)

        rows, count = SupabaseClient.fetch_page(query, action="list workout progress")
        return [map_progress_row(row) for row in rows], count

    @staticmethod
    def increment_workout_progress(org_id: str, athlete_id: str, evaluation_id: str) -> dict[str, Any]:
        """
        Count one workout rep, levelling up when maxWorkoutReps is reached.

        Raises:
            NotFoundError: "Workout progress not found"
            BadRequestError: When the org's maxWorkoutReps isn't positive
        """
        client = SupabaseClient.get_client()
        row = SupabaseClient.fetch_one(
            client.table("evaluation_workout_progress")
            .select(PROGRESS_SELECT)
            .eq("org_id", org_id)
            .eq("athlete_id", athlete_id)
            .eq("evaluation_id", evaluation_id),
            action="load workout progress",
        )
        if not row or not row.get("id"):
            raise NotFoundError("Workout progress not found", code="WORKOUT_PROGRESS_NOT_FOUND")

        try:
            max_reps = float(_as_one(row.get("organizations")).get("maxWorkoutReps"))
        except (TypeError, ValueError):
            max_reps = math.nan
        if not math.isfinite(max_reps) or max_reps <= 0:
            raise BadRequestError("maxWorkoutReps must be a positive number")
        if max_reps.is_integer():
            max_reps = int(max_reps)

        progress, level = next_workout_step(row.get("progress"), row.get("level"), max_reps)
        updated = SupabaseClient.fetch_all(
            client.table("evaluation_workout_progress")
            .update({"progress": progress, "level": level})
            .eq("id", row["id"]),
            action="update workout progress",
        )
        if not updated:
            raise NotFoundError("Workout progress not found", code="WORKOUT_PROGRESS_NOT_FOUND")

        result = updated[0]
        logger.info(f"Workout progress {row['id']} now at level {level}, rep {progress}")
        return {
            "id": result.get("id"),
            "org_id": result.get("org_id"),
            "evaluation_id": result.get("evaluation_id"),
            "athlete_id": result.get("athlete_id"),
            "progress": result.get("progress"),
            "level": result.get("level"),
            "maxWorkoutReps": max_reps,
        }

    @staticmethod
    def list_workout_drills(org_id: str, athlete_id: str, evaluation_id: str) -> list[dict[str, Any]]:
        """
        Drills assigned at the athlete's current workout level.

        Returns:
            [] when there is no progress row, else a single level entry:
            [{level, title, targetReps, drills: [{id, title, duration, thumbnailUrl}]}]
        """
        client = SupabaseClient.get_client()
        progress_row = SupabaseClient.fetch_one(
            client.table("evaluation_workout_progress")
            .select("level, progress")
            .eq("org_id", org_id)
            .eq("athlete_id", athlete_id)
            .eq("evaluation_id", evaluation_id),
            action="load workout level",
        )
        level = _finite_number((progress_row or {}).get("level"))
        if level is None:
            return []

        drill_rows = SupabaseClient.fetch_all(
            client.table("evaluation_workout_drills")
            .select("drill_id, level")
            .eq("org_id", org_id)
            .eq("athlete_id", athlete_id)
            .eq("evaluation_id", evaluation_id)
            .eq("level", level),
            action="load workout drills",
        )
        if not drill_rows:
            return []

        drill_ids = unique(row["drill_id"] for row in drill_rows if row.get("drill_id"))
        media: dict[str, dict[str, Any]] = {}
        if drill_ids:
            media_rows = SupabaseClient.fetch_all(
                client.table("drill_media")
                .select("drill_id, title, thumbnail_url, sort_order, media_type")
                .in_("drill_id", drill_ids)
                .order("sort_order"),
                action="load workout drill media",
            )
            for row in media_rows:
                if row.get("drill_id") and row["drill_id"] not in media:
                    media[row["drill_id"]] = row

        drills = []
        for row in drill_rows:
            if not row.get("drill_id"):
                continue
            first = media.get(row["drill_id"], {})
            title = first.get("title")
            drills.append({
                "id": row["drill_id"],
                "title": title if isinstance(title, str) else "",
                "duration": "30",
                "thumbnailUrl": first.get("thumbnail_url"),
            })

        return [{
            "level": level,
            "title": f"Level {level}",
            "targetReps": _finite_number(progress_row.get("progress")),
            "drills": drills,
        }]


def _with_date(row: dict[str, Any]) -> dict[str, Any]:
    """Replace created_at with the display date."""
    result = {"evaluation_id": row["evaluation_id"], "date": format_evaluation_date(row.get("created_at"))}
    result.update({key: value for key, value in row.items() if key not in ("evaluation_id", "created_at")})
    return result


def _without_created_at(row: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in row.items() if key != "created_at"}

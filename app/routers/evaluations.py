# =============================================================================
# app/routers/evaluations.py - Evaluation Endpoints
# =============================================================================
# Coach-only. Evaluations are created in bulk, edited cell by cell through
# the matrix endpoint, then submitted.
#
# Per-athlete views accept the evaluation either as the `{id}` path param
# (/eval/{id}/...) or as the `evaluation_id` query param (/...).
# =============================================================================

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request

from app.auth.guards import evaluation_bulk_org_guard, org_role_guard_from_body, org_role_guard_from_query
from app.dependencies import Context, PathId, optional_uuid_param, pagination, require_uuid_param
from app.exceptions import BadRequestError
from core.models.evaluation import EvaluationMatrixUpdate, parse_bulk_evaluations
from core.services.evaluation_service import EvaluationService
from lib.utils import clean_str, is_uuid, normalize_date_input

router = APIRouter()

coach_query_guard = Depends(org_role_guard_from_query("org_id", ["coach"]))


# =============================================================================
# Request Helpers
# =============================================================================

def get_athlete_target(request: Request) -> tuple[str, str]:
    """(evaluation_id, athlete_id) for the per-athlete views."""
    evaluation_id = request.path_params.get("id") or request.query_params.get("evaluation_id")
    evaluation_id = require_uuid_param(request, "evaluation_id", evaluation_id)
    athlete_id = require_uuid_param(request, "athlete_id")
    return evaluation_id, athlete_id


AthleteTarget = Annotated[tuple[str, str], Depends(get_athlete_target)]


def _date_bound(value: str | None, boundary: str, name: str) -> str | None:
    value = clean_str(value)
    if value is None:
        return None
    normalized = normalize_date_input(value, boundary)
    if normalized is None:
        raise BadRequestError(f"{name} must be a valid date")
    return normalized


# =============================================================================
# Create / Edit / Submit
# =============================================================================

@router.post("/bulk-create", status_code=201, dependencies=[Depends(evaluation_bulk_org_guard(["coach"]))])
async def bulk_create_evaluations(body: Annotated[dict[str, Any], Body()]):
    """
    Create several evaluations with their ratings in one transaction.

    Every evaluation must target the same org. Validation messages point at
    the offending entry, e.g. `evaluations[0].evaluation_items[1].rating
    must be between 1 and 5`.
    """
    try:
        evaluations = parse_bulk_evaluations(body)
    except ValueError as e:
        raise BadRequestError(str(e), code="INVALID_EVALUATION")

    created = EvaluationService.bulk_create(evaluations)
    return {"ok": True, "count": len(created), "data": created}


@router.patch("/eval/{id}/matrix", dependencies=[Depends(org_role_guard_from_body("org_id", ["coach"]))])
async def update_evaluation_matrix(evaluation_id: PathId, body: EvaluationMatrixUpdate):
    """
    Patch the evaluation header and apply rating operations in order.

    Operations:
    - upsert_rating: set a rating (a null rating clears the cell)
    - remove_athlete: drop every rating of an athlete
    """
    evaluation = EvaluationService.apply_matrix_update(evaluation_id, body)
    return {"ok": True, "evaluation": evaluation}


@router.post("/eval/{id}/submit", dependencies=[coach_query_guard])
async def submit_evaluation_alias(evaluation_id: PathId, ctx: Context):
    """Alias of POST /evaluations/{id}."""
    return {"ok": True, "data": EvaluationService.submit(evaluation_id, ctx.org_id)}


# =============================================================================
# Listings
# =============================================================================

@router.get("/list", dependencies=[coach_query_guard])
async def list_evaluations(ctx: Context):
    """Evaluations that aren't completed yet, newest first."""
    items = EvaluationService.list_open(ctx.org_id)
    return {"ok": True, "count": len(items), "data": items}


@router.get("/latest", dependencies=[coach_query_guard])
async def list_latest_evaluations(
    request: Request,
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(20))],
    scorecard_name: Annotated[str | None, Query()] = None,
    coach: Annotated[str | None, Query(description="Coach id or name")] = None,
    coach_id: Annotated[str | None, Query()] = None,
    coach_name: Annotated[str | None, Query()] = None,
    date: Annotated[str | None, Query(description="Single day, YYYY-MM-DD")] = None,
    date_from: Annotated[str | None, Query()] = None,
    date_to: Annotated[str | None, Query()] = None,
):
    """
    An athlete's evaluations, one row per evaluation, newest first.

    A bare date covers its whole UTC day.
    """
    athlete_id = require_uuid_param(request, "athlete_id")

    coach_id = optional_uuid_param(coach_id, "coach_id")
    coach_name = clean_str(coach_name)
    coach = clean_str(coach)
    if coach and not coach_id and not coach_name:
        if is_uuid(coach):
            coach_id = coach
        else:
            coach_name = coach

    if clean_str(date):
        start = _date_bound(date, "start", "date")
        end = _date_bound(date, "end", "date")
    else:
        start = _date_bound(date_from, "start", "date_from")
        end = _date_bound(date_to, "end", "date_to")

    limit, offset = page
    items, count = EvaluationService.list_latest_for_athlete(
        ctx.org_id,
        athlete_id,
        scorecard_name=clean_str(scorecard_name),
        coach_id=coach_id,
        coach_name=coach_name,
        date_from=start,
        date_to=end,
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": count, "data": items}


@router.get("/athletes", dependencies=[coach_query_guard])
async def list_evaluation_athletes(
    request: Request,
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(200))],
    athlete_id: Annotated[str | None, Query()] = None,
):
    """The unique athletes rated in an evaluation."""
    evaluation_id = require_uuid_param(request, "evaluation_id")
    limit, offset = page
    items, count = EvaluationService.list_evaluation_athletes(
        ctx.org_id,
        evaluation_id,
        athlete_id=optional_uuid_param(athlete_id, "athlete_id"),
        limit=limit,
        offset=offset,
    )
    return {"ok": True, "count": count, "data": items}


@router.get("/eval/{id}", dependencies=[coach_query_guard])
async def get_evaluation(evaluation_id: PathId, ctx: Context):
    """Get an evaluation with its items, athletes and template categories."""
    return {"ok": True, "evaluation": EvaluationService.get_detail(evaluation_id, ctx.org_id)}


# =============================================================================
# Per-athlete Views
# =============================================================================

@router.get("/improvement-skills", dependencies=[coach_query_guard])
@router.get("/eval/{id}/improvement-skills", dependencies=[coach_query_guard])
async def list_improvement_skills(
    target: AthleteTarget,
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(3))],
):
    """Skills the athlete was rated below 3 on."""
    evaluation_id, athlete_id = target
    limit, offset = page
    items, count = EvaluationService.list_improvement_skills(
        ctx.org_id, evaluation_id, athlete_id, limit=limit, offset=offset
    )
    return {"ok": True, "count": count, "data": items}


@router.get("/skill-videos", dependencies=[coach_query_guard])
@router.get("/eval/{id}/skill-videos", dependencies=[coach_query_guard])
async def list_skill_videos(target: AthleteTarget, ctx: Context):
    """Training videos for the skills the athlete was rated below 3 on."""
    evaluation_id, athlete_id = target
    items = EvaluationService.list_skill_videos(ctx.org_id, evaluation_id, athlete_id)
    return {"ok": True, "count": len(items), "data": items}


@router.get("/subskill-ratings", dependencies=[coach_query_guard])
@router.get("/eval/{id}/subskill-ratings", dependencies=[coach_query_guard])
async def list_subskill_ratings(target: AthleteTarget, ctx: Context):
    """The athlete's ratings grouped by scorecard category."""
    evaluation_id, athlete_id = target
    items = EvaluationService.list_subskill_ratings(ctx.org_id, evaluation_id, athlete_id)
    return {"ok": True, "count": len(items), "data": items}


@router.get("/workout-progress", dependencies=[coach_query_guard])
@router.get("/eval/{id}/workout-progress", dependencies=[coach_query_guard])
async def list_workout_progress(
    target: AthleteTarget,
    ctx: Context,
    page: Annotated[tuple[int, int], Depends(pagination(200))],
):
    """Workout progress rows with the org's maxWorkoutReps."""
    evaluation_id, athlete_id = target
    limit, offset = page
    items, count = EvaluationService.list_workout_progress(
        ctx.org_id, athlete_id, evaluation_id, limit=limit, offset=offset
    )
    return {"ok": True, "count": count, "data": items}


@router.post("/workout-progress/increment", dependencies=[coach_query_guard])
@router.post("/eval/{id}/workout-progress/increment", dependencies=[coach_query_guard])
async def increment_workout_progress(target: AthleteTarget, ctx: Context):
    """
    Count one workout rep.

    Reaching maxWorkoutReps resets progress to 0 and moves up one level.
    """
    evaluation_id, athlete_id = target
    progress = EvaluationService.increment_workout_progress(ctx.org_id, athlete_id, evaluation_id)
    return {"ok": True, "data": progress}


@router.get("/workout-drills", dependencies=[coach_query_guard])
@router.get("/eval/{id}/workout-drills", dependencies=[coach_query_guard])
async def list_workout_drills(target: AthleteTarget, ctx: Context):
    """Drills assigned at the athlete's current workout level."""
    evaluation_id, athlete_id = target
    items = EvaluationService.list_workout_drills(ctx.org_id, athlete_id, evaluation_id)
    return {"ok": True, "count": len(items), "data": items}


# Registered last: `/{id}` would otherwise capture the literal POST routes
@router.post("/{id}", dependencies=[coach_query_guard])
async def submit_evaluation(evaluation_id: PathId, ctx: Context):
    """
    Mark an evaluation completed.

    Only not_started and in_progress evaluations change; otherwise the
    current status is returned.
    """
    return {"ok": True, "data": EvaluationService.submit(evaluation_id, ctx.org_id)}

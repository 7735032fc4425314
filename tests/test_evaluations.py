# =============================================================================
# tests/test_evaluations.py - Evaluation Tests
# =============================================================================
# Tests for evaluation creation, the matrix editor, submission and the
# workout progress counter.
# =============================================================================

import math

import pytest

from core.models.evaluation import (
    EvaluationMatrixUpdate,
    UpsertRatingOperation,
    parse_bulk_evaluations,
)
from core.services.evaluation_service import map_created_evaluation, next_workout_step
from tests.conftest import ATHLETE_ID, EVALUATION_ID, ORG_ID, SKILL_ID, TEAM_ID, USER_ID, grant_role

MATRIX_URL = f"/evaluations/eval/{EVALUATION_ID}/matrix"


def bulk_body(**overrides) -> dict:
    evaluation = {
        "org_id": ORG_ID,
        "scorecard_template_id": "tmpl-1",
        "team_id": TEAM_ID,
        "coach_id": USER_ID,
        "notes": "Preseason",
        "evaluation_items": [
            {"athlete_id": ATHLETE_ID, "skill_id": SKILL_ID, "rating": 4, "comments": "Solid"},
        ],
    }
    evaluation.update(overrides)
    return {"evaluations": [evaluation]}


# =============================================================================
# Bulk Create
# =============================================================================

class TestBulkValidation:
    """Tests for parse_bulk_evaluations."""

    def test_missing_array(self):
        """A body without evaluations is rejected."""
        with pytest.raises(ValueError, match="'evaluations' array"):
            parse_bulk_evaluations({})

    def test_rating_out_of_range_is_indexed(self):
        """Errors point at the offending item."""
        # Arrange
        body = bulk_body(evaluation_items=[
            {"athlete_id": ATHLETE_ID, "skill_id": SKILL_ID, "rating": 3},
            {"athlete_id": ATHLETE_ID, "skill_id": SKILL_ID, "rating": 6},
        ])

        # Act / Assert
        with pytest.raises(ValueError) as exc_info:
            parse_bulk_evaluations(body)
        assert str(exc_info.value) == "evaluations[0].evaluation_items[1].rating must be between 1 and 5"

    def test_rating_must_be_number(self):
        body = bulk_body(evaluation_items=[{"athlete_id": ATHLETE_ID, "skill_id": SKILL_ID, "rating": "4"}])

        with pytest.raises(ValueError, match=r"evaluation_items\[0\]\.rating must be a number"):
            parse_bulk_evaluations(body)

    def test_empty_items(self):
        with pytest.raises(ValueError, match="must be a non-empty array"):
            parse_bulk_evaluations(bulk_body(evaluation_items=[]))

    def test_missing_coach(self):
        body = bulk_body()
        del body["evaluations"][0]["coach_id"]

        with pytest.raises(ValueError, match=r"evaluations\[0\]\.coach_id is required"):
            parse_bulk_evaluations(body)

    def test_blank_team_becomes_none(self):
        evaluations = parse_bulk_evaluations(bulk_body(team_id=""))

        assert evaluations[0].team_id is None
        assert evaluations[0].evaluation_items[0].rating == 4


class TestBulkCreateEndpoint:
    """Tests for POST /evaluations/bulk-create."""

    def test_creates_through_rpc(self, client, fake_db):
        """Payload goes to the transaction RPC and rows come back with API names."""
        # Arrange
        grant_role(fake_db, "coach")
        fake_db.on_rpc("evaluations_bulk_create_tx", [{
            "id": EVALUATION_ID,
            "org_id": ORG_ID,
            "template_id": "tmpl-1",
            "teams_id": TEAM_ID,
            "evaluation_items": [
                {"id": "item-1", "athlete_id": ATHLETE_ID, "subskill_id": SKILL_ID, "rating": 4, "comment": "Solid"},
            ],
        }])

        # Act
        response = client.post("/evaluations/bulk-create", json=bulk_body())

        # Assert
        assert response.status_code == 201
        data = response.json()
        assert data["ok"] is True
        assert data["count"] == 1
        created = data["data"][0]
        assert created["scorecard_template_id"] == "tmpl-1"
        assert created["team_id"] == TEAM_ID
        assert created["evaluation_items"][0]["skill_id"] == SKILL_ID
        assert created["evaluation_items"][0]["comments"] == "Solid"

        params = fake_db.rpc_params("evaluations_bulk_create_tx")
        assert params["evaluations"][0]["scorecard_template_id"] == "tmpl-1"
        assert params["evaluations"][0]["evaluation_items"][0]["skill_id"] == SKILL_ID

    def test_invalid_rating_is_400(self, client, fake_db):
        grant_role(fake_db, "coach")
        body = bulk_body(evaluation_items=[{"athlete_id": ATHLETE_ID, "skill_id": SKILL_ID, "rating": 0}])

        response = client.post("/evaluations/bulk-create", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "evaluations[0].evaluation_items[0].rating must be between 1 and 5"
        assert fake_db.queries("rpc:evaluations_bulk_create_tx") == []

    def test_mixed_orgs_rejected(self, client, fake_db):
        # Arrange
        body = bulk_body()
        second = dict(body["evaluations"][0], org_id="33333333-3333-4333-8333-333333333333")
        body["evaluations"].append(second)

        # Act
        response = client.post("/evaluations/bulk-create", json=body)

        # Assert
        assert response.status_code == 400
        assert response.json()["error"] == "All evaluations must share the same org_id."

    def test_rpc_failure_is_500(self, client, fake_db):
        grant_role(fake_db, "coach")
        fake_db.on_rpc("evaluations_bulk_create_tx", error="insert or update violates foreign key")

        response = client.post("/evaluations/bulk-create", json=bulk_body())

        assert response.status_code == 500
        assert response.json()["ok"] is False


class TestMapCreatedEvaluation:
    def test_renames_columns(self):
        row = {"id": "e1", "template_id": "t1", "teams_id": None, "evaluation_items": []}

        mapped = map_created_evaluation(row)

        assert mapped == {"id": "e1", "scorecard_template_id": "t1", "team_id": None, "evaluation_items": []}


# =============================================================================
# Matrix Update
# =============================================================================

class TestMatrixModel:
    """Tests for EvaluationMatrixUpdate."""

    def test_nan_rating_clears(self):
        operation = UpsertRatingOperation(
            type="upsert_rating", athlete_id=ATHLETE_ID, subskill_id=SKILL_ID, rating=math.nan
        )
        assert operation.clears_rating is True

    def test_non_numeric_rating_clears(self):
        operation = UpsertRatingOperation(
            type="upsert_rating", athlete_id=ATHLETE_ID, subskill_id=SKILL_ID, rating="abc"
        )
        assert operation.clears_rating is True

    def test_numeric_string_rating_is_kept(self):
        operation = UpsertRatingOperation(
            type="upsert_rating", athlete_id=ATHLETE_ID, subskill_id=SKILL_ID, rating=" 4 "
        )
        assert operation.rating == 4.0
        assert operation.clears_rating is False

    def test_header_patch_only_sent_fields(self):
        # Arrange
        update = EvaluationMatrixUpdate(
            org_id=ORG_ID,
            team_id=TEAM_ID,
            operations=[{"type": "remove_athlete", "athlete_id": ATHLETE_ID}],
        )

        # Act
        patch = update.header_patch()

        # Assert
        assert patch == {"org_id": ORG_ID, "teams_id": TEAM_ID}

    def test_explicit_null_is_written(self):
        update = EvaluationMatrixUpdate(
            org_id=ORG_ID,
            notes=None,
            operations=[{"type": "remove_athlete", "athlete_id": ATHLETE_ID}],
        )
        assert update.header_patch() == {"org_id": ORG_ID, "notes": None}


class TestMatrixEndpoint:
    """Tests for PATCH /evaluations/eval/{id}/matrix."""

    def test_missing_operations(self, client, fake_db):
        grant_role(fake_db, "coach")

        response = client.patch(MATRIX_URL, json={"org_id": ORG_ID})

        assert response.status_code == 400
        assert response.json()["error"] == "Body must include an 'operations' array"

    def test_empty_operations(self, client, fake_db):
        grant_role(fake_db, "coach")

        response = client.patch(MATRIX_URL, json={"org_id": ORG_ID, "operations": []})

        assert response.status_code == 400
        assert response.json()["error"] == "'operations' array must not be empty"

    def test_missing_evaluation_is_404(self, client, fake_db):
        # Arrange
        grant_role(fake_db, "coach")
        body = {"org_id": ORG_ID, "operations": [{"type": "remove_athlete", "athlete_id": ATHLETE_ID}]}

        # Act
        response = client.patch(MATRIX_URL, json=body)

        # Assert
        assert response.status_code == 404
        assert response.json()["error"] == "Evaluation not found"
        assert fake_db.queries("evaluation_items") == []

    def test_applies_operations_in_order(self, client, fake_db):
        """remove, clear, update and insert each hit evaluation_items."""
        # Arrange
        grant_role(fake_db, "coach")
        other_skill = "bbbbbbbb-bbbb-4bbb-8bbb-bbbbbbbbbbbb"
        fake_db.on("evaluations", [{"id": EVALUATION_ID}])          # existence check
        fake_db.on("evaluations", [])                               # header update
        fake_db.on("evaluations", [{"id": EVALUATION_ID, "org_id": ORG_ID, "evaluation_items": []}])
        fake_db.on("evaluation_items", [])                          # remove_athlete
        fake_db.on("evaluation_items", [])                          # clear
        fake_db.on("evaluation_items", [{"id": "item-1"}])          # lookup: exists
        fake_db.on("evaluation_items", [])                          # update
        fake_db.on("evaluation_items", [])                          # lookup: missing
        fake_db.on("evaluation_items", [])                          # insert
        body = {
            "org_id": ORG_ID,
            "notes": "Updated",
            "operations": [
                {"type": "remove_athlete", "athlete_id": ATHLETE_ID},
                {"type": "upsert_rating", "athlete_id": ATHLETE_ID, "subskill_id": SKILL_ID, "rating": None},
                {"type": "upsert_rating", "athlete_id": ATHLETE_ID, "subskill_id": SKILL_ID, "rating": 4},
                {"type": "upsert_rating", "athlete_id": ATHLETE_ID, "subskill_id": other_skill,
                 "rating": 2, "comments": "Work on it"},
            ],
        }

        # Act
        response = client.patch(MATRIX_URL, json=body)

        # Assert
        assert response.status_code == 200
        assert response.json()["evaluation"]["id"] == EVALUATION_ID

        header = fake_db.last("evaluations", "update")
        assert header.payload() == {"org_id": ORG_ID, "notes": "Updated"}

        operations = [query.operation for query in fake_db.queries("evaluation_items")]
        assert operations == ["delete", "delete", "select", "update", "select", "insert"]

        clear = fake_db.queries("evaluation_items", "delete")[1]
        assert clear.has("eq", "subskill_id", SKILL_ID)

        assert fake_db.last("evaluation_items", "update").payload() == {"rating": 4.0, "comment": None}
        inserted = fake_db.last("evaluation_items", "insert").payload()
        assert inserted["subskill_id"] == other_skill
        assert inserted["comment"] == "Work on it"
        assert inserted["recommended_skill_id"] is None

    def test_non_numeric_rating_deletes_cell(self, client, fake_db):
        # Arrange
        grant_role(fake_db, "coach")
        fake_db.on("evaluations", [{"id": EVALUATION_ID}])          # existence check
        fake_db.on("evaluations", [])                               # header update
        fake_db.on("evaluations", [{"id": EVALUATION_ID, "org_id": ORG_ID, "evaluation_items": []}])
        fake_db.on("evaluation_items", [])                          # clear
        body = {
            "org_id": ORG_ID,
            "operations": [
                {"type": "upsert_rating", "athlete_id": ATHLETE_ID, "subskill_id": SKILL_ID, "rating": "abc"},
            ],
        }

        # Act
        response = client.patch(MATRIX_URL, json=body)

        # Assert
        assert response.status_code == 200
        operations = [query.operation for query in fake_db.queries("evaluation_items")]
        assert operations == ["delete"]
        assert fake_db.last("evaluation_items", "delete").has("eq", "subskill_id", SKILL_ID)

    def test_requires_coach_role(self, client, fake_db):
        grant_role(fake_db, "athlete")
        body = {"org_id": ORG_ID, "operations": [{"type": "remove_athlete", "athlete_id": ATHLETE_ID}]}

        response = client.patch(MATRIX_URL, json=body)

        assert response.status_code == 403
        assert response.json()["error"] == "Insufficient role for this action"


# =============================================================================
# Submit
# =============================================================================

class TestSubmit:
    """Tests for POST /evaluations/{id}."""

    def test_marks_completed(self, client, fake_db):
        grant_role(fake_db, "coach")
        fake_db.on("evaluations", [{"id": EVALUATION_ID, "status": "completed"}])

        response = client.post(f"/evaluations/{EVALUATION_ID}?org_id={ORG_ID}")

        assert response.status_code == 200
        assert response.json()["data"] == {"id": EVALUATION_ID, "status": "completed"}
        query = fake_db.last("evaluations", "update")
        assert query.has("in_", "status", ["not_started", "in_progress"])

    def test_already_completed_returns_current_status(self, client, fake_db):
        # Arrange
        grant_role(fake_db, "coach")
        fake_db.on("evaluations", [])
        fake_db.on("evaluations", [{"id": EVALUATION_ID, "status": "completed"}])

        # Act
        response = client.post(f"/evaluations/eval/{EVALUATION_ID}/submit?org_id={ORG_ID}")

        # Assert
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"

    def test_unknown_evaluation(self, client, fake_db):
        grant_role(fake_db, "coach")

        response = client.post(f"/evaluations/{EVALUATION_ID}?org_id={ORG_ID}")

        assert response.status_code == 404


# =============================================================================
# Workout Progress
# =============================================================================

class TestNextWorkoutStep:
    def test_counts_a_rep(self):
        assert next_workout_step(0, 1, 3) == (1, 1)

    def test_levels_up_at_max(self):
        assert next_workout_step(2, 1, 3) == (0, 2)

    def test_missing_values_start_at_zero(self):
        assert next_workout_step(None, None, 5) == (1, 0)


class TestIncrementWorkoutProgress:
    """Tests for POST /evaluations/workout-progress/increment."""

    url = (
        f"/evaluations/workout-progress/increment"
        f"?org_id={ORG_ID}&evaluation_id={EVALUATION_ID}&athlete_id={ATHLETE_ID}"
    )

    def test_levels_up(self, client, fake_db):
        # Arrange
        grant_role(fake_db, "coach")
        fake_db.on("evaluation_workout_progress", [{
            "id": "progress-1", "progress": 2, "level": 1, "organizations": {"maxWorkoutReps": 3},
        }])
        fake_db.on("evaluation_workout_progress", [{
            "id": "progress-1", "org_id": ORG_ID, "evaluation_id": EVALUATION_ID,
            "athlete_id": ATHLETE_ID, "progress": 0, "level": 2,
        }])

        # Act
        response = client.post(self.url)

        # Assert
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["progress"] == 0
        assert data["level"] == 2
        assert data["maxWorkoutReps"] == 3
        assert fake_db.last("evaluation_workout_progress", "update").payload() == {"progress": 0, "level": 2}

    def test_missing_progress_is_404(self, client, fake_db):
        grant_role(fake_db, "coach")

        response = client.post(self.url)

        assert response.status_code == 404
        assert response.json()["error"] == "Workout progress not found"

    def test_non_positive_max_is_400(self, client, fake_db):
        grant_role(fake_db, "coach")
        fake_db.on("evaluation_workout_progress", [{
            "id": "progress-1", "progress": 0, "level": 1, "organizations": {"maxWorkoutReps": 0},
        }])

        response = client.post(self.url)

        assert response.status_code == 400
        assert response.json()["error"] == "maxWorkoutReps must be a positive number"

    def test_path_form_requires_athlete(self, client, fake_db):
        grant_role(fake_db, "coach")

        response = client.post(f"/evaluations/eval/{EVALUATION_ID}/workout-progress/increment?org_id={ORG_ID}")

        assert response.status_code == 400
        assert response.json()["error"] == "athlete_id (UUID) is required"


# =============================================================================
# Latest
# =============================================================================

class TestLatestEvaluations:
    """Tests for GET /evaluations/latest."""

    def test_bad_date(self, client, fake_db):
        grant_role(fake_db, "coach")

        response = client.get(
            "/evaluations/latest",
            params={"org_id": ORG_ID, "athlete_id": ATHLETE_ID, "date_from": "yesterday"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "date_from must be a valid date"

    def test_groups_and_filters(self, client, fake_db):
        # Arrange
        grant_role(fake_db, "coach")
        evaluation = {
            "id": EVALUATION_ID,
            "org_id": ORG_ID,
            "created_at": "2025-01-05T15:07:00Z",
            "coach": {"id": USER_ID, "full_name": "Casey Coach"},
            "scorecard_template": {"id": "t1", "name": "Hitting"},
        }
        row = {
            "evaluation_id": EVALUATION_ID,
            "evaluation": evaluation,
            "athlete": {"id": ATHLETE_ID, "full_name": "Alex Athlete"},
        }
        fake_db.on("evaluation_items", [row, row])

        # Act
        response = client.get(
            "/evaluations/latest",
            params={"org_id": ORG_ID, "athlete_id": ATHLETE_ID, "coach": "Casey", "date": "2025-01-05"},
        )

        # Assert
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["data"][0]["scorecard_name"] == "Hitting"
        assert data["data"][0]["coach_name"] == "Casey Coach"

        query = fake_db.last("evaluation_items")
        assert query.has("ilike", "evaluation.coach.full_name", "%Casey%")
        assert query.has("gte", "evaluation.created_at", "2025-01-05T00:00:00.000Z")
        assert query.has("lte", "evaluation.created_at", "2025-01-05T23:59:59.999Z")

    def test_requires_athlete(self, client, fake_db):
        grant_role(fake_db, "coach")

        response = client.get("/evaluations/latest", params={"org_id": ORG_ID})

        assert response.status_code == 400
        assert response.json()["error"] == "athlete_id (UUID) is required"

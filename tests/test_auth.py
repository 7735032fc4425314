# =============================================================================
# tests/test_auth.py - Signup, Login and Organization Signup Tests
# =============================================================================

import pytest

from app.exceptions import BadRequestError
from core.services.auth_service import map_signup_error
from tests.conftest import ORG_ID, OTHER_USER_ID, TEAM_ID, USER_ID
from tests.fakes import FakeDBError


def athlete_signup(**overrides) -> dict:
    body = {
        "role": "athlete",
        "joinCode": "ABC123",
        "email": "alex@example.com",
        "password": "s3cretpass",
        "firstName": "Alex",
        "lastName": "Athlete",
        "termsAccepted": True,
        "graduationYear": 2027,
        "positions": ["Face Off", "attack"],
    }
    body.update(overrides)
    return body


def org_signup(**overrides) -> dict:
    body = {
        "admin": {
            "firstName": "Ada",
            "lastName": "Admin",
            "email": "ada@example.com",
            "password": "s3cretpass",
        },
        "organization": {"name": "River Hawks", "programGender": "girls"},
        "teams": [{"name": "Varsity"}, {"name": "  "}, {"name": "JV"}],
    }
    body.update(overrides)
    return body


# =============================================================================
# Signup Error Mapping
# =============================================================================

class TestMapSignupError:
    """Tests for map_signup_error."""

    @pytest.mark.parametrize("message,expected", [
        ("INVALID_JOIN_CODE", "Invalid or expired join code."),
        ("EXPIRED_OR_USED_JOIN_CODE: code used", "Invalid or expired join code."),
        ("TERMS_REQUIRED", "You must accept the terms & conditions."),
        ("POSITION_REQUIRED", "At least one position is required."),
    ])
    def test_known_codes_are_400(self, message, expected):
        error = map_signup_error(message)

        assert isinstance(error, BadRequestError)
        assert error.message == expected

    def test_unknown_is_500(self):
        error = map_signup_error("deadlock detected")

        assert error.status_code == 500
        assert error.message == "Signup failed: deadlock detected"


# =============================================================================
# Join-code Signup
# =============================================================================

class TestSignup:
    """Tests for POST /auth/signup."""

    def test_athlete_signup(self, anon_client, fake_db):
        # Arrange
        fake_db.auth.admin.next_ids.append(USER_ID)
        fake_db.on_rpc("signup_register_athlete_with_code_tx", [{"org_id": ORG_ID, "athlete_id": "a1"}])

        # Act
        response = anon_client.post("/auth/signup", json=athlete_signup())

        # Assert
        assert response.status_code == 201
        data = response.json()
        assert data["ok"] is True
        assert data["user_id"] == USER_ID
        assert data["role"] == "athlete"
        assert data["org_id"] == ORG_ID
        assert data["message"] == "Welcome to ANKOR!"

        params = fake_db.rpc_params("signup_register_athlete_with_code_tx")
        assert params["p_positions"] == ["faceoff", "attack"]
        assert params["p_code"] == "ABC123"
        assert fake_db.auth.admin.created[0]["app_metadata"] == {"role": "athlete"}

    def test_invalid_position_creates_nothing(self, anon_client, fake_db):
        response = anon_client.post("/auth/signup", json=athlete_signup(positions=["striker"]))

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid position value(s)."
        assert fake_db.auth.admin.created == []

    def test_email_taken(self, anon_client, fake_db):
        fake_db.auth.admin.create_errors.append(Exception("User already registered"))

        response = anon_client.post("/auth/signup", json=athlete_signup())

        assert response.status_code == 409
        assert response.json()["error"] == "Email already registered"

    def test_rejected_code_rolls_back_user(self, anon_client, fake_db):
        # Arrange
        fake_db.auth.admin.next_ids.append(USER_ID)
        fake_db.on_rpc("signup_register_coach_with_code_tx", error="INVALID_JOIN_CODE")
        body = athlete_signup(role="coach")

        # Act
        response = anon_client.post("/auth/signup", json=body)

        # Assert
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid or expired join code."
        assert fake_db.auth.admin.deleted == [USER_ID]

    def test_short_password(self, anon_client):
        response = anon_client.post("/auth/signup", json=athlete_signup(password="short"))

        assert response.status_code == 400
        assert response.json()["error"] == "Password must be at least 8 characters"

    def test_unknown_role(self, anon_client):
        response = anon_client.post("/auth/signup", json=athlete_signup(role="referee"))

        assert response.status_code == 400


# =============================================================================
# Login
# =============================================================================

class TestLogin:
    """Tests for POST /auth/login."""

    def test_token_must_match(self, client):
        response = client.post("/auth/login", json={"userId": OTHER_USER_ID})

        assert response.status_code == 401
        assert response.json()["error"] == "Token does not match user"

    def test_coach_login(self, client, fake_db):
        # Arrange
        fake_db.on("profiles", [{
            "id": USER_ID, "email": "coach@example.com", "full_name": "Casey Coach",
            "role": "coach", "default_org_id": ORG_ID,
        }])
        fake_db.on("athletes", [])
        fake_db.on("guardian_contacts", [])
        fake_db.on("coaches", [{"id": "coach-1"}])

        # Act
        response = client.post("/auth/login", json={"user_id": USER_ID})

        # Assert
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["role"] == "coach"
        assert user["coach_id"] == "coach-1"
        assert user["athlete_id"] is None

    def test_parent_detected_by_matching_email(self, client, fake_db):
        # Arrange
        fake_db.on("profiles", [{"id": USER_ID, "role": "athlete", "default_org_id": ORG_ID}])
        fake_db.on("athletes", [{"email": "Family@Example.com"}])
        fake_db.on("guardian_contacts", [{"email": "family@example.com "}])

        # Act
        response = client.post("/auth/login", json={"userid": USER_ID})

        # Assert
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "parent"

    def test_missing_profile(self, client):
        response = client.post("/auth/login", json={"user_id": USER_ID})

        assert response.status_code == 404
        assert response.json()["error"] == "Profile not found"

    def test_requires_token(self, anon_client):
        response = anon_client.post("/auth/login", json={"user_id": USER_ID})

        assert response.status_code == 401


# =============================================================================
# Organization Signup
# =============================================================================

class TestOrgSignup:
    """Tests for POST /org/signup."""

    def test_registers_org(self, anon_client, fake_db):
        # Arrange
        fake_db.auth.admin.next_ids.append(USER_ID)
        fake_db.on_rpc("signup_register_org_tx", [{"org_id": ORG_ID, "profile_id": USER_ID, "team_ids": [TEAM_ID]}])

        # Act
        response = anon_client.post("/org/signup", json=org_signup())

        # Assert
        assert response.status_code == 201
        assert response.json() == {
            "ok": True,
            "userId": USER_ID,
            "orgId": ORG_ID,
            "profileId": USER_ID,
            "teamIds": [TEAM_ID],
        }
        assert fake_db.rpc_params("signup_register_org_tx")["p_team_names"] == ["Varsity", "JV"]

    def test_missing_admin_fields(self, anon_client, fake_db):
        response = anon_client.post("/org/signup", json=org_signup(admin={"firstName": "Ada"}))

        assert response.status_code == 400
        assert response.json()["error"] == "Missing admin fields"

    def test_invalid_gender(self, anon_client, fake_db):
        body = org_signup(organization={"name": "River Hawks", "programGender": "mixed"})

        response = anon_client.post("/org/signup", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid organization data"

    def test_rpc_failure_rolls_back(self, anon_client, fake_db):
        # Arrange
        fake_db.auth.admin.next_ids.append(USER_ID)
        fake_db.on_rpc("signup_register_org_tx", error="duplicate org name")

        # Act
        response = anon_client.post("/org/signup", json=org_signup())

        # Assert
        assert response.status_code == 500
        assert response.json()["error"] == "Signup failed: duplicate org name"
        assert fake_db.auth.admin.deleted == [USER_ID]

    def test_auth_failure_is_400(self, anon_client, fake_db):
        fake_db.auth.admin.create_errors.append(FakeDBError("weak password"))

        response = anon_client.post("/org/signup", json=org_signup())

        assert response.status_code == 400
        assert response.json()["error"] == "Could not create user: weak password"

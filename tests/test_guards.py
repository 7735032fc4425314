# =============================================================================
# tests/test_guards.py - Authorization Guard Tests
# =============================================================================
# Tests for the org, body, user and bulk guards, exercised through real
# routes so the dependency order is covered too.
# =============================================================================

from core.services.membership_service import MembershipService
from tests.conftest import ORG_ID, OTHER_ORG_ID, OTHER_USER_ID, USER_ID, grant_role


# =============================================================================
# Membership Lookups
# =============================================================================

class TestMembershipService:
    """Tests for MembershipService.require_org_role."""

    def test_admin_roles_pass_every_check(self):
        assert MembershipService.has_role_access("owner", ["coach"]) is True
        assert MembershipService.has_role_access("admin", ["athlete"]) is True

    def test_listed_role_passes(self):
        assert MembershipService.has_role_access("coach", ["coach", "athlete"]) is True

    def test_unlisted_role_fails(self):
        assert MembershipService.has_role_access("parent", ["coach"]) is False

    def test_lookup_failure_means_no_access(self, fake_db):
        # Arrange
        fake_db.on("org_memberships", error="connection reset")

        # Act
        role = MembershipService.get_org_role(USER_ID, ORG_ID)

        # Assert
        assert role is None

    def test_unknown_role_ignored(self, fake_db):
        fake_db.on("org_memberships", [{"role": "janitor", "is_active": True}])

        assert MembershipService.get_org_role(USER_ID, ORG_ID) is None

    def test_lookup_filters(self, fake_db):
        grant_role(fake_db, "coach")

        MembershipService.get_org_role(USER_ID, ORG_ID)

        query = fake_db.last("org_memberships")
        assert query.has("eq", "org_id", ORG_ID)
        assert query.has("eq", "user_id", USER_ID)
        assert query.has("eq", "is_active", True)


# =============================================================================
# Query Guard
# =============================================================================

class TestOrgQueryGuard:
    """Tests for org_role_guard_from_query (via GET /teams/list)."""

    def test_missing_org_id(self, client):
        response = client.get("/teams/list")

        assert response.status_code == 400
        assert response.json()["error"] == "org_id (UUID) is required"

    def test_invalid_org_id(self, client):
        response = client.get("/teams/list?org_id=not-a-uuid")

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_UUID"

    def test_no_membership(self, client):
        response = client.get(f"/teams/list?org_id={ORG_ID}")

        assert response.status_code == 403
        assert response.json()["error"] == "No access to this organization"

    def test_insufficient_role(self, client, fake_db):
        grant_role(fake_db, "athlete")

        response = client.get(f"/teams/list?org_id={ORG_ID}")

        assert response.status_code == 403
        assert response.json()["error"] == "Insufficient role for this action"

    def test_admin_passes(self, client, fake_db):
        # Arrange
        grant_role(fake_db, "admin")
        fake_db.on("teams", [])

        # Act
        response = client.get(f"/teams/list?org_id={ORG_ID}")

        # Assert
        assert response.status_code == 200
        assert response.json()["ok"] is True


# =============================================================================
# Body Guard
# =============================================================================

class TestOrgBodyGuard:
    """Tests for org_role_guard_from_body (via POST /athletes)."""

    def test_invalid_json(self, client):
        response = client.post(
            "/athletes",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON payload"

    def test_missing_org_id(self, client):
        response = client.post("/athletes", json={"first_name": "Alex"})

        assert response.status_code == 400
        assert response.json()["error"] == "org_id (UUID) is required"

    def test_no_membership(self, client):
        response = client.post("/athletes", json={"org_id": ORG_ID, "first_name": "Alex"})

        assert response.status_code == 403


# =============================================================================
# Bulk Guard
# =============================================================================

class TestBulkGuard:
    """Tests for evaluation_bulk_org_guard."""

    def test_requires_array(self, client):
        response = client.post("/evaluations/bulk-create", json={"evaluations": []})

        assert response.status_code == 400
        assert response.json()["error"] == "Body must contain an 'evaluations' array."

    def test_requires_one_org(self, client):
        body = {"evaluations": [{"org_id": ORG_ID}, {"org_id": OTHER_ORG_ID}]}

        response = client.post("/evaluations/bulk-create", json=body)

        assert response.status_code == 400
        assert response.json()["error"] == "All evaluations must share the same org_id."

    def test_missing_org_counts_as_mixed(self, client):
        response = client.post("/evaluations/bulk-create", json={"evaluations": [{"coach_id": USER_ID}]})

        assert response.status_code == 400
        assert response.json()["error"] == "All evaluations must share the same org_id."

    def test_invalid_org(self, client):
        response = client.post("/evaluations/bulk-create", json={"evaluations": [{"org_id": "abc"}]})

        assert response.status_code == 400
        assert response.json()["error"] == "org_id (UUID) is required"


# =============================================================================
# User Guard
# =============================================================================

class TestUserQueryGuard:
    """Tests for user_query_guard (via the plan listings)."""

    def test_invited_requires_user_id(self, client, fake_db):
        grant_role(fake_db, "athlete")

        response = client.get(f"/plans/invited?org_id={ORG_ID}")

        assert response.status_code == 400
        assert response.json()["error"] == "user_id (UUID) is required"

    def test_other_user_forbidden(self, client, fake_db):
        grant_role(fake_db, "athlete")

        response = client.get(f"/plans/invited?org_id={ORG_ID}&user_id={OTHER_USER_ID}")

        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    def test_match_is_exact(self, client, fake_db):
        grant_role(fake_db, "athlete")

        response = client.get(f"/plans/invited?org_id={ORG_ID}&user_id={USER_ID.upper()}")

        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"

    def test_own_user_id_passes(self, client, fake_db):
        grant_role(fake_db, "athlete")
        fake_db.on("practice_plans", [], count=0)

        response = client.get(f"/plans/invited?org_id={ORG_ID}&user_id={USER_ID}")

        assert response.status_code == 200

    def test_list_allows_missing_user(self, client, fake_db):
        grant_role(fake_db, "coach")
        fake_db.on("practice_plans", [], count=0)

        response = client.get(f"/plans/list?org_id={ORG_ID}&type=prebuild")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "count": 0, "items": []}

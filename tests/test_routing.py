# =============================================================================
# tests/test_routing.py - Routing, CORS and Authentication Tests
# =============================================================================
# Tests for the app shell: path aliases, the error envelope for unknown
# routes, OPTIONS handling and bearer token verification.
# =============================================================================

import base64
import json
import time
from unittest.mock import MagicMock, patch

import httpx
from jose import jwt

from app.auth.dependencies import SigningKeys, _verification_key, signing_keys
from app.config import settings
from tests.conftest import ORG_ID, USER_ID, grant_role


def make_token(sub: str = USER_ID, secret: str = "test-jwt-secret", expires_in: int = 3600) -> str:
    claims = {
        "sub": sub,
        "email": "coach@example.com",
        "aud": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    return jwt.encode(claims, secret, algorithm="HS256")


# =============================================================================
# Root and Health
# =============================================================================

class TestRootAndHealth:
    """Tests for the public informational endpoints."""

    def test_root(self, anon_client):
        response = anon_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["name"] == "ANKOR API"

    def test_health(self, anon_client):
        response = anon_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readiness_with_fake_backend(self, anon_client):
        response = anon_client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert data["checks"] == {"database": "healthy", "storage": "healthy"}

    def test_liveness(self, anon_client):
        assert anon_client.get("/health/live").json()["status"] == "alive"


# =============================================================================
# Path Aliases
# =============================================================================

class TestPathAliases:
    """The API answers under /, /api and /functions/v1/api."""

    def test_api_prefix(self, anon_client):
        assert anon_client.get("/api/health").status_code == 200

    def test_functions_prefix(self, anon_client):
        assert anon_client.get("/functions/v1/api/health").status_code == 200

    def test_aliases_hidden_from_schema(self, anon_client):
        # Act
        paths = anon_client.get("/openapi.json").json()["paths"]

        # Assert
        assert "/health" in paths
        assert "/api/health" not in paths
        assert "/functions/v1/api/health" not in paths


# =============================================================================
# Unknown Routes
# =============================================================================

class TestNotFound:
    """Unknown routes answer with the error envelope."""

    def test_unknown_path(self, anon_client):
        response = anon_client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"ok": False, "error": "Not found: GET /nope", "code": "ROUTE_NOT_FOUND"}

    def test_prefix_is_stripped_from_message(self, anon_client):
        response = anon_client.get("/api/teams/unknown/deeper")

        assert response.status_code == 404
        assert response.json()["error"] == "Not found: GET /teams/unknown/deeper"

    def test_wrong_method_is_404(self, client):
        response = client.delete("/drills/segments")

        assert response.status_code == 404
        assert response.json()["error"] == "Not found: DELETE /drills/segments"


# =============================================================================
# CORS
# =============================================================================

class TestCors:
    """Tests for preflight handling and CORS headers."""

    def test_options_answers_ok(self, anon_client):
        # Act
        response = anon_client.options("/teams/list")

        # Assert
        assert response.status_code == 200
        assert response.text == "ok"
        assert response.headers["access-control-allow-origin"] == "*"
        assert "PATCH" in response.headers["access-control-allow-methods"]

    def test_options_on_unknown_path(self, anon_client):
        assert anon_client.options("/not/a/route").text == "ok"

    def test_error_responses_carry_cors(self, anon_client):
        response = anon_client.get("/nope")

        assert "access-control-allow-headers" in response.headers

    def test_listed_origin_is_echoed(self, anon_client, monkeypatch):
        # Arrange
        monkeypatch.setattr(settings, "ALLOWED_ORIGINS", "https://a.example, https://b.example")

        # Act
        response = anon_client.options("/teams/list", headers={"Origin": "https://a.example"})

        # Assert
        assert response.headers["access-control-allow-origin"] == "https://a.example"
        assert response.headers["vary"] == "Origin"

    def test_unlisted_origin_gets_no_allow_origin(self, anon_client, monkeypatch):
        monkeypatch.setattr(settings, "ALLOWED_ORIGINS", "https://a.example,https://b.example")

        response = anon_client.options("/teams/list", headers={"Origin": "https://evil.example"})

        assert response.text == "ok"
        assert "access-control-allow-origin" not in response.headers


# =============================================================================
# Literal Routes vs /{id}
# =============================================================================

class TestRouteOrdering:
    """Literal paths must not be captured as ids."""

    def test_segments_not_treated_as_id(self, client, fake_db):
        # Arrange
        fake_db.on("segments", [{"id": "s1", "name": "Warmup"}])

        # Act
        response = client.get("/drills/segments")

        # Assert
        assert response.status_code == 200
        assert response.json() == {"ok": True, "count": 1, "items": [{"id": "s1", "name": "Warmup"}]}

    def test_id_route_still_validates(self, client, fake_db):
        grant_role(fake_db, "coach")

        response = client.get(f"/drills/not-a-uuid?org_id={ORG_ID}")

        assert response.status_code == 400
        assert response.json()["error"] == "id (UUID) is required"


# =============================================================================
# Bearer Tokens
# =============================================================================

class TestBearerAuth:
    """Tests for get_current_user with real tokens."""

    def test_missing_token(self, anon_client):
        response = anon_client.get("/drills/segments")

        assert response.status_code == 401
        assert response.json()["error"] == "Missing bearer token"

    def test_garbage_token(self, anon_client):
        response = anon_client.get("/drills/segments", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token"

    def test_wrong_secret(self, anon_client):
        token = make_token(secret="someone-else")

        response = anon_client.get("/drills/segments", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_expired_token(self, anon_client):
        token = make_token(expires_in=-60)

        response = anon_client.get("/drills/segments", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token"

    def test_valid_token(self, anon_client, fake_db):
        # Arrange
        fake_db.on("segments", [])
        token = make_token()

        # Act
        response = anon_client.get("/drills/segments", headers={"Authorization": f"Bearer {token}"})

        # Assert
        assert response.status_code == 200
        assert response.json()["count"] == 0

    def test_scheme_is_case_insensitive(self, anon_client):
        token = make_token()

        response = anon_client.get("/drills/segments", headers={"Authorization": f"bearer {token}"})

        assert response.status_code == 200

    def test_public_routes_skip_auth(self, anon_client):
        response = anon_client.post("/auth/signup", json={})

        assert response.status_code == 400


# =============================================================================
# Signing Keys
# =============================================================================

def unsigned_token(header: dict) -> str:
    encoded = base64.urlsafe_b64encode(json.dumps(header).encode()).rstrip(b"=").decode()
    return f"{encoded}.e30.c2ln"


def jwks_response(keys: list[dict]) -> MagicMock:
    response = MagicMock()
    response.json.return_value = {"keys": keys}
    return response


class TestSigningKeys:
    """Tests for the JWKS key cache and key selection."""

    def test_keys_cached_between_lookups(self):
        # Arrange
        keys = SigningKeys(ttl=60)

        # Act
        with patch("app.auth.dependencies.httpx.get", return_value=jwks_response([{"kid": "k1"}])) as get:
            first = keys.find("k1")
            second = keys.find("k2")

        # Assert
        assert first == {"kid": "k1"}
        assert second is None
        assert get.call_count == 1
        assert get.call_args.args[0] == "https://test-project.supabase.co/auth/v1/.well-known/jwks.json"

    def test_failed_refresh_keeps_previous_keys(self):
        # Arrange
        keys = SigningKeys(ttl=60)
        keys.keys = [{"kid": "k1"}]
        keys.fetched_at = 0

        # Act
        with patch("app.auth.dependencies.httpx.get", side_effect=httpx.ConnectError("down")):
            found = keys.find("k1")

        # Assert
        assert found == {"kid": "k1"}

    def test_hs256_uses_secret(self):
        assert _verification_key(make_token()) == ("test-jwt-secret", "HS256")

    def test_asymmetric_token_uses_matching_key(self):
        token = unsigned_token({"alg": "ES256", "kid": "k1"})

        with patch.object(signing_keys, "find", return_value={"kid": "k1", "kty": "EC"}):
            key, algorithm = _verification_key(token)

        assert key == {"kid": "k1", "kty": "EC"}
        assert algorithm == "ES256"

    def test_unknown_kid_falls_back_to_secret(self):
        token = unsigned_token({"alg": "ES256", "kid": "missing"})

        with patch.object(signing_keys, "find", return_value=None):
            assert _verification_key(token) == ("test-jwt-secret", "HS256")

# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Installs an in-memory Supabase client (tests/fakes.py)
# - Provides API clients with and without an authenticated user
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from uuid import UUID

import pytest
from fastapi import Request
from fastapi.testclient import TestClient

from app.auth.dependencies import get_current_user, get_request_context
from app.auth.models import AuthUser
from app.main import app
from lib.supabase_client import SupabaseClient
from tests.fakes import FakeSupabase

# Fixed ids used across tests
USER_ID = "11111111-1111-4111-8111-111111111111"
ORG_ID = "22222222-2222-4222-8222-222222222222"
OTHER_ORG_ID = "33333333-3333-4333-8333-333333333333"
TEAM_ID = "44444444-4444-4444-8444-444444444444"
ATHLETE_ID = "55555555-5555-4555-8555-555555555555"
EVALUATION_ID = "66666666-6666-4666-8666-666666666666"
PLAN_ID = "77777777-7777-4777-8777-777777777777"
SKILL_ID = "88888888-8888-4888-8888-888888888888"
DRILL_ID = "99999999-9999-4999-8999-999999999999"
OTHER_USER_ID = "aaaaaaaa-aaaa-4aaa-8aaa-aaaaaaaaaaaa"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db():
    """Install a fresh in-memory Supabase client for one test."""
    fake = FakeSupabase()
    previous = SupabaseClient._instance
    SupabaseClient._instance = fake
    yield fake
    SupabaseClient._instance = previous


@pytest.fixture
def auth_user() -> AuthUser:
    return AuthUser(id=UUID(USER_ID), email="coach@example.com")


@pytest.fixture
def client(fake_db, auth_user):
    """API client whose requests are authenticated as auth_user."""

    async def override_current_user(request: Request) -> AuthUser:
        ctx = get_request_context(request)
        ctx.user = auth_user
        return auth_user

    app.dependency_overrides[get_current_user] = override_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(fake_db):
    """API client without any auth override."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def grant_role(fake_db: FakeSupabase, role: str) -> None:
    """Queue an active org membership for the next guard lookup."""
    fake_db.on("org_memberships", [{"role": role, "is_active": True}])

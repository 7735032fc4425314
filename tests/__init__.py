# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the ANKOR API:
# - test_models.py / test_utils.py / test_mappers.py: Unit tests
# - test_routing.py / test_guards.py: Routing, auth and org access
# - test_auth.py, test_resources.py, test_evaluations.py, test_plans.py:
#   Endpoint tests against the in-memory Supabase client (fakes.py)
#
# Run tests with: pytest
# =============================================================================

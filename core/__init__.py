# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the business logic behind the API routes:
# - models/: Pydantic schemas for request validation
# - services/: Supabase queries, RPC calls and row -> API mapping
#
# Services raise app.exceptions errors and never build HTTP responses.
# =============================================================================

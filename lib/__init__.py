# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Supabase client singleton and query helpers
# - utils.py: UUID checks, pagination parsing, date and storage path helpers
#
# Modules are imported directly (from lib.utils import ...) so that
# app.exceptions can use lib.utils without pulling in the Supabase client.
# =============================================================================

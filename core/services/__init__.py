# =============================================================================
# core/services/ - Service Layer
# =============================================================================
# One module per resource. Services are classes of static methods that run
# Supabase queries/RPCs and map rows to API shapes.
#
# Modules are imported directly (from core.services.plan_service import ...)
# because app.auth.guards imports services while services import
# app.exceptions.
# =============================================================================

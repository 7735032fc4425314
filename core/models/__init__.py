# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for request validation:
# - common.py: Shared field types (UUIDStr, TrimmedStr, MediaType, ...)
# - auth.py: Join-code signup, login and organization signup
# - member.py: Athlete and coach create/patch
# - skill.py / drill.py / media.py: Skill and drill catalogue
# - scorecard.py: Scorecard templates
# - evaluation.py: Bulk evaluations and matrix operations
# - plan.py: Practice plans
#
# Modules are imported directly (from core.models.plan import ...).
# These models define the "contract" between API and clients.
# =============================================================================

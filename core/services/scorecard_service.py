# =============================================================================
# core/services/scorecard_service.py - Scorecard Templates
# =============================================================================
# Templates are created in one transaction by create_scorecard_template_tx.
# The procedure raises coded errors (e.g. CATEGORY_NEEDS_ONE_SUBSKILL) that
# are translated to readable messages here.
# =============================================================================

import logging
from typing import Any

from lib.supabase_client import SupabaseClient, SupabaseClientError
from core.models.scorecard import CreateScorecardTemplateRequest
from app.exceptions import AnkorException

logger = logging.getLogger(__name__)

TEMPLATE_SELECT = "id, org_id, sport_id, name, description, is_active, created_by, created_at, updated_at"

# Checked in order; the first code found in the DB message wins
TEMPLATE_ERROR_MESSAGES = (
    ("FORBIDDEN", "You do not have permission for this organization."),
    ("CATEGORY_NEEDS_ONE_SUBSKILL", "Each category must have at least one subskill."),
    ("SUBSKILL_SKILL_REQUIRED", "Each subskill must include a valid skill_id."),
    ("SUBSKILL_SKILL_NOT_IN_ORG_OR_SPORT", "One or more skills do not belong to this org/sport."),
    ("AT_LEAST_ONE_CATEGORY_REQUIRED", "At least one category is required."),
    ("NAME_REQUIRED", "Template name is required."),
    ("ORG_REQUIRED", "org_id is required."),
)


def map_template_error(message: str) -> AnkorException:
    """Translate a create_scorecard_template_tx failure (always a 500)."""
    for code, friendly in TEMPLATE_ERROR_MESSAGES:
        if code in message:
            return AnkorException(friendly, code=code)
    return AnkorException(f"Failed to create template: {message}", code="TEMPLATE_CREATE_FAILED")


class ScorecardService:
    """
    Service for scorecard template operations.
    """

    @staticmethod
    def create_template(request: CreateScorecardTemplateRequest, created_by: str) -> str:
        """
        Create a template with its categories and subskills.

        Returns:
            The new template id
        """
        try:
            rows = SupabaseClient.call_rpc("create_scorecard_template_tx", {
                "p_template": request.template_payload(),
                "p_created_by": created_by,
            })
        except SupabaseClientError as e:
            raise map_template_error(e.message)

        if not rows:
            raise map_template_error("RPC returned no data")

        template_id = rows[0].get("template_id")
        logger.info(f"Created scorecard template {template_id} in org {request.org_id}")
        return template_id

    @staticmethod
    def list_templates(
        org_id: str,
        sport_id: str | None = None,
        q: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """List org templates, most recently updated first."""
        client = SupabaseClient.get_client()
        query = (
            client.table("scorecard_templates")
            .select(TEMPLATE_SELECT, count="exact")
            .eq("org_id", org_id)
        )
        if sport_id:
            query = query.eq("sport_id", sport_id)
        if q:
            query = query.or_(f"name.ilike.%{q}%,description.ilike.%{q}%")
        query = query.order("updated_at", desc=True).range(offset, offset + limit - 1)
        return SupabaseClient.fetch_page(query, action="list scorecard templates")

    @staticmethod
    def list_categories(
        org_id: str,
        template_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """Categories of a template, restricted to templates of the org."""
        client = SupabaseClient.get_client()
        query = (
            client.table("scorecard_categories")
            .select(
                "id, template_id, name, description, position, "
                "template:scorecard_templates!inner(org_id)",
                count="exact",
            )
            .eq("template_id", template_id)
            .eq("template.org_id", org_id)
            .order("position")
            .range(offset, offset + limit - 1)
        )
        rows, count = SupabaseClient.fetch_page(query, action="list scorecard categories")
        return [_without(row, "template") for row in rows], count

    @staticmethod
    def list_subskills(
        org_id: str,
        category_id: str,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[dict], int]:
        """Subskills of a category, restricted to templates of the org."""
        client = SupabaseClient.get_client()
        query = (
            client.table("scorecard_subskills")
            .select(
                "id, category_id, skill_id, name, description, position, "
                "category:scorecard_categories!inner(template:scorecard_templates!inner(org_id))",
                count="exact",
            )
            .eq("category_id", category_id)
            .eq("category.template.org_id", org_id)
            .order("position")
            .range(offset, offset + limit - 1)
        )
        rows, count = SupabaseClient.fetch_page(query, action="list scorecard subskills")
        return [_without(row, "category") for row in rows], count


def _without(row: dict[str, Any], key: str) -> dict[str, Any]:
    return {name: value for name, value in row.items() if name != key}

# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Public endpoints for monitoring and load balancers. The readiness probe
# touches the database and the storage API.
# =============================================================================

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: str
    environment: str
    version: str


class ChecksResponse(BaseModel):
    """Individual upstream checks."""
    database: str
    storage: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""
    status: str
    checks: ChecksResponse
    timestamp: str


class LivenessResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        environment=settings.ENVIRONMENT,
        version=API_VERSION,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Readiness check endpoint.

    Reports "degraded" unless both the database and storage answer.
    """
    checks = ChecksResponse(database="unknown", storage="unknown")

    try:
        client = SupabaseClient.get_client()
        client.table("organizations").select("id").limit(1).execute()
        checks.database = "healthy"
    except Exception as e:
        logger.warning(f"Database readiness check failed: {e}")
        checks.database = f"unhealthy: {str(e)[:50]}"

    try:
        client = SupabaseClient.get_client()
        client.storage.list_buckets()
        checks.storage = "healthy"
    except Exception as e:
        logger.warning(f"Storage readiness check failed: {e}")
        checks.storage = f"unhealthy: {str(e)[:50]}"

    all_healthy = checks.database == "healthy" and checks.storage == "healthy"

    return ReadinessResponse(
        status="ready" if all_healthy else "degraded",
        checks=checks,
        timestamp=_now(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """Returns whether the service process is alive."""
    return LivenessResponse(status="alive", timestamp=_now())

# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the ANKOR API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# The whole API is mounted three times so that it answers at /, /api/ and
# /functions/v1/api/ (the paths older clients call).
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.auth import get_current_user
from app.exceptions import (
    AnkorException,
    ankor_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.routers import (
    athletes,
    auth,
    coaches,
    drills,
    evaluations,
    health,
    org,
    plans,
    scorecard,
    skills,
    teams,
    users,
)
from app.routers.health import API_VERSION
from lib.utils import API_PREFIXES

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
CORS_HEADERS = ["authorization", "content-type", "x-client-info", "apikey"]


def cors_headers(origin: str | None = None) -> dict[str, str]:
    """
    Headers attached to every response, matched or not.

    Allow-Origin is "*" when any origin is allowed, the request origin when
    it is listed, and left out otherwise.
    """
    headers = {
        "Access-Control-Allow-Methods": ", ".join(CORS_METHODS),
        "Access-Control-Allow-Headers": ", ".join(CORS_HEADERS),
    }
    allowed = settings.cors_origins_list
    if "*" in allowed:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin in allowed:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    The Supabase client is created lazily on first use, so startup only
    logs the configuration.
    """
    logger.info(f"Starting ANKOR API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    yield

    logger.info("Shutting down ANKOR API")


# Create FastAPI application
app = FastAPI(
    title="ANKOR API",
    description="""
## Sports Team Management API

Backend for ANKOR: organizations, teams, athletes, coaches, drills, skills,
scorecards, evaluations and practice plans.

### Conventions

- Every response is JSON with an `ok` flag. Errors carry `error` (and often `code`).
- Send `Authorization: Bearer <supabase access token>` on every route except
  `/auth/*`, `/org/*` and `/health*`.
- Org-scoped routes take `org_id` (query or body); the caller needs an
  active membership with a suitable role in that org.
""",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Signup with a join code and login"},
        {"name": "Organizations", "description": "Organization onboarding"},
        {"name": "Users", "description": "Org user directory"},
        {"name": "Teams", "description": "Teams and their athletes"},
        {"name": "Athletes", "description": "Athlete management"},
        {"name": "Coaches", "description": "Coach management"},
        {"name": "Skills", "description": "Skill catalogue and skill media"},
        {"name": "Drills", "description": "Drill library and drill media"},
        {"name": "Scorecards", "description": "Scorecard templates"},
        {"name": "Evaluations", "description": "Athlete evaluations and workouts"},
        {"name": "Plans", "description": "Practice plans and invitations"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - answers browser preflights and echoes allowed origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_methods=CORS_METHODS,
    allow_headers=CORS_HEADERS,
)


@app.middleware("http")
async def options_and_cors_headers(request: Request, call_next):
    """
    Answer any OPTIONS request with "ok" and add CORS headers everywhere.

    Added after CORSMiddleware, so it wraps it and sees every request first.
    """
    if request.method == "OPTIONS":
        return PlainTextResponse("ok", headers=cors_headers(request.headers.get("origin")))

    response = await call_next(request)
    for name, value in cors_headers(request.headers.get("origin")).items():
        response.headers.setdefault(name, value)
    return response


# =============================================================================
# Exception Handlers
# =============================================================================

app.add_exception_handler(AnkorException, ankor_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": f"Unexpected error: {exc}", "code": "INTERNAL_ERROR"},
        headers=cors_headers(request.headers.get("origin")),
    )


# =============================================================================
# Routers
# =============================================================================

def build_api_router() -> APIRouter:
    """
    Assemble the resource routers.

    auth, org and health are public; every other router runs the bearer
    token check before its own guards.
    """
    api = APIRouter()
    authenticated = [Depends(get_current_user)]

    api.include_router(health.router, tags=["Health"])
    api.include_router(auth.router, prefix="/auth", tags=["Auth"])
    api.include_router(org.router, prefix="/org", tags=["Organizations"])

    api.include_router(users.router, prefix="/users", tags=["Users"], dependencies=authenticated)
    api.include_router(teams.router, prefix="/teams", tags=["Teams"], dependencies=authenticated)
    api.include_router(athletes.router, prefix="/athletes", tags=["Athletes"], dependencies=authenticated)
    api.include_router(coaches.router, prefix="/coaches", tags=["Coaches"], dependencies=authenticated)
    api.include_router(skills.router, prefix="/skills", tags=["Skills"], dependencies=authenticated)
    api.include_router(drills.router, prefix="/drills", tags=["Drills"], dependencies=authenticated)
    api.include_router(scorecard.router, prefix="/scorecard", tags=["Scorecards"], dependencies=authenticated)
    api.include_router(evaluations.router, prefix="/evaluations", tags=["Evaluations"], dependencies=authenticated)
    api.include_router(plans.router, prefix="/plans", tags=["Plans"], dependencies=authenticated)
    return api


api_router = build_api_router()

# The first prefix ("") is the documented one; aliases stay out of the schema
for index, prefix in enumerate(API_PREFIXES):
    app.include_router(api_router, prefix=prefix, include_in_schema=index == 0)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "ok": True,
        "name": "ANKOR API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }

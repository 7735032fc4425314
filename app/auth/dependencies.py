# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Provides dependency injection for authentication.
#
# Supports both:
# - ES256 (new Supabase JWT signing keys) via JWKS
# - HS256 (legacy Supabase JWT secret) as fallback
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   router = APIRouter(dependencies=[Depends(get_current_user)])
# =============================================================================

import logging
import time
from typing import Optional
from uuid import UUID

import httpx
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from app.config import settings
from app.auth.models import AuthUser, RequestContext
from app.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor (scheme match is case-insensitive)
security = HTTPBearer(auto_error=False)


class SigningKeys:
    """
    Public keys of the project's asymmetric (ES256/RS256) token signer.

    Keys are fetched from the auth server's JWKS endpoint and kept for
    `ttl` seconds. A failed refresh keeps serving the previous key set.
    """

    def __init__(self, ttl: float = 3600):
        self.ttl = ttl
        self.keys: list[dict] = []
        self.fetched_at: float = 0

    @property
    def url(self) -> str:
        return f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/.well-known/jwks.json"

    def refresh(self) -> None:
        if self.keys and time.time() - self.fetched_at < self.ttl:
            return
        try:
            response = httpx.get(self.url, timeout=10)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"JWKS refresh failed, keeping {len(self.keys)} cached key(s): {e}")
            return
        self.keys = response.json().get("keys", [])
        self.fetched_at = time.time()
        logger.debug(f"Loaded {len(self.keys)} signing key(s) from {self.url}")

    def find(self, kid: str) -> dict | None:
        self.refresh()
        return next((key for key in self.keys if key.get("kid") == kid), None)


signing_keys = SigningKeys()


def _verification_key(token: str) -> tuple[str | dict, str]:
    """
    Pick the key and algorithm a token must verify against.

    HS256 tokens (and anything whose kid is unknown) use the shared JWT
    secret; asymmetric tokens use the matching JWKS entry.
    """
    try:
        header = jwt.get_unverified_header(token)
    except JWTError:
        return settings.SUPABASE_JWT_SECRET, "HS256"

    algorithm = header.get("alg") or "HS256"
    kid = header.get("kid")
    if algorithm != "HS256" and kid:
        key = signing_keys.find(kid)
        if key is not None:
            return key, algorithm
        logger.warning(f"No signing key for kid={kid}, verifying with the JWT secret")
    return settings.SUPABASE_JWT_SECRET, "HS256"


def verify_access_token(token: str) -> AuthUser:
    """
    Verify a Supabase access token and return its user.

    Raises:
        UnauthorizedError: 401 "Invalid or expired token" for any failure
    """
    key, algorithm = _verification_key(token)
    try:
        claims = jwt.decode(token, key, algorithms=[algorithm], audience="authenticated")
    except JWTError as e:
        logger.warning(f"Rejected access token: {e}")
        raise UnauthorizedError("Invalid or expired token", code="INVALID_TOKEN")

    subject = claims.get("sub")
    try:
        user_uuid = UUID(str(subject))
    except ValueError:
        logger.warning(f"Token subject is not a UUID: {subject}")
        raise UnauthorizedError("Invalid or expired token", code="INVALID_TOKEN")

    return AuthUser(id=user_uuid, email=claims.get("email"))


def get_request_context(request: Request) -> RequestContext:
    """
    Get (or lazily create) the context for this request.

    Guards and handlers share the same instance through request.state.
    """
    ctx = getattr(request.state, "ctx", None)
    if ctx is None:
        ctx = RequestContext()
        request.state.ctx = ctx
    return ctx


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """
    Extract and validate the user from the Authorization header.

    This dependency:
    1. Extracts the Bearer token from the Authorization header
    2. Verifies the JWT signature (supports ES256 and HS256)
    3. Stores the user on the request context for later guards

    Raises:
        UnauthorizedError: 401 "Missing bearer token" or "Invalid or expired token"
    """
    ctx = get_request_context(request)
    if ctx.user is not None:
        return ctx.user

    token = credentials.credentials.strip() if credentials else ""
    if not token:
        raise UnauthorizedError("Missing bearer token", code="MISSING_TOKEN")

    user = verify_access_token(token)
    ctx.user = user
    logger.debug(f"Authenticated user: {user.id}")
    return user

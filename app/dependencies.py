# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection shared by the resource routers.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated, Callable

from fastapi import Depends, Query, Request

from app.auth.dependencies import get_current_user, get_request_context
from app.auth.models import AuthUser, RequestContext
from app.exceptions import BadRequestError, InvalidUUIDError
from lib.utils import is_uuid, parse_pagination

# Type aliases for dependency injection
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]
Context = Annotated[RequestContext, Depends(get_request_context)]


def pagination(default_limit: int, max_limit: int = 200) -> Callable[..., tuple[int, int]]:
    """
    Build a limit/offset dependency.

    Values are read as raw strings so unparseable input falls back to the
    default instead of failing validation.
    """

    def dependency(
        limit: Annotated[str | None, Query(description="Page size")] = None,
        offset: Annotated[str | None, Query(description="Rows to skip")] = None,
    ) -> tuple[int, int]:
        return parse_pagination(limit, offset, default_limit, max_limit)

    return dependency


def require_uuid_param(request: Request, name: str, value: str | None = None) -> str:
    """
    Read a UUID from a path or query parameter.

    Raises:
        InvalidUUIDError: 400 "<name> (UUID) is required"
    """
    if value is None:
        value = request.path_params.get(name) or request.query_params.get(name)
    value = (value or "").strip()
    if not is_uuid(value):
        raise InvalidUUIDError(name)
    return value


def optional_uuid_param(value: str | None, name: str, message: str | None = None) -> str | None:
    """A blank value is None; anything else must be a UUID."""
    value = (value or "").strip()
    if not value:
        return None
    if not is_uuid(value):
        if message:
            raise BadRequestError(message)
        raise InvalidUUIDError(name)
    return value


def get_path_id(request: Request) -> str:
    """The `{id}` path parameter, which must be a UUID."""
    return require_uuid_param(request, "id", request.path_params.get("id", ""))


PathId = Annotated[str, Depends(get_path_id)]

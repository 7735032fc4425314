# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every failure leaves the API as {"ok": false, "error": "<message>"} with an
# optional machine-readable code and suggestion.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from lib.utils import strip_api_prefix

logger = logging.getLogger(__name__)


class AnkorException(Exception):
    """
    Base exception for the ANKOR API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "ANKOR_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "ok": False,
            "error": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# HTTP Category Exceptions
# =============================================================================

class BadRequestError(AnkorException):
    """Raised when the request is malformed or fails validation."""

    def __init__(self, message: str, code: str = "BAD_REQUEST", **kwargs):
        super().__init__(message=message, code=code, status_code=400, **kwargs)


class UnauthorizedError(AnkorException):
    """Raised when the caller is not authenticated."""

    def __init__(self, message: str = "Unauthorized", code: str = "UNAUTHORIZED", **kwargs):
        super().__init__(message=message, code=code, status_code=401, **kwargs)


class ForbiddenError(AnkorException):
    """Raised when the caller is authenticated but not allowed."""

    def __init__(self, message: str = "Forbidden", code: str = "FORBIDDEN", **kwargs):
        super().__init__(message=message, code=code, status_code=403, **kwargs)


class NotFoundError(AnkorException):
    """Raised when a resource doesn't exist (or is outside the caller's org)."""

    def __init__(self, message: str, code: str = "NOT_FOUND", **kwargs):
        super().__init__(message=message, code=code, status_code=404, **kwargs)


class ConflictError(AnkorException):
    """Raised when a resource already exists."""

    def __init__(self, message: str, code: str = "CONFLICT", **kwargs):
        super().__init__(message=message, code=code, status_code=409, **kwargs)


class InvalidUUIDError(BadRequestError):
    """Raised when a required identifier is missing or not a UUID."""

    def __init__(self, field: str):
        super().__init__(
            message=f"{field} (UUID) is required",
            code="INVALID_UUID",
            details={"field": field},
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def ankor_exception_handler(
    request: Request,
    exc: AnkorException
) -> JSONResponse:
    """
    Convert AnkorException to JSON response.

    Returns structured error with:
    - error: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    """
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def _format_validation_error(error: dict[str, Any]) -> str:
    """Turn one pydantic error into a readable message."""
    if error.get("type") == "json_invalid":
        return "Invalid JSON payload"

    message = str(error.get("msg", "Invalid value"))
    if error.get("type") == "value_error":
        # Custom validators already carry the full sentence
        return message.removeprefix("Value error, ")

    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    if not loc and tuple(error.get("loc", ())) == ("body",):
        # Missing body, or a body that isn't a JSON object
        return "Invalid JSON payload"

    field = ".".join(loc)
    return f"{field}: {message}" if field else message


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    All issues are joined with "; " into a single 400 error message.
    """
    messages = []
    for error in exc.errors():
        message = _format_validation_error(error)
        if message not in messages:
            messages.append(message)

    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": "; ".join(messages) or "Invalid request",
            "code": "VALIDATION_ERROR",
        }
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException
) -> JSONResponse:
    """
    Handle routing misses and other framework HTTP errors.

    Unknown paths and known paths hit with the wrong method both answer
    404 "Not found: METHOD /path".
    """
    if exc.status_code in (404, 405):
        subpath = strip_api_prefix(request.url.path)
        return JSONResponse(
            status_code=404,
            content={
                "ok": False,
                "error": f"Not found: {request.method} /{subpath}",
                "code": "ROUTE_NOT_FOUND",
            }
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )

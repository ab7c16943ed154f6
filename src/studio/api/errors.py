"""
Error handlers: map studio errors to RFC 7807 problem responses.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from studio.core.errors import ErrorCategory, IntegrityError, StudioError
from studio.core.logging import get_logger

logger = get_logger(__name__)

# ── Error category → HTTP status mapping ─────────────────────────────────

CATEGORY_TO_STATUS: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NETWORK: 503,
    ErrorCategory.DATABASE: 500,
    ErrorCategory.INTERNAL: 500,
}


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs»."""

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str = ""
    instance: str = ""


def status_for_error(exc: StudioError) -> int:
    """Resolve a studio error to HTTP status, defaulting to 500."""
    if isinstance(exc, IntegrityError):
        return 409
    return CATEGORY_TO_STATUS.get(exc.category, 500)


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    type_: str = "about:blank",
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(type=type_, title=title, status=status, detail=detail, instance=instance)
    return JSONResponse(
        status_code=status,
        content=body.model_dump(),
        media_type="application/problem+json",
    )


async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    """Typed errors keep their message; status follows the category."""
    status = status_for_error(exc)
    log: Any = logger.error if status >= 500 else logger.info
    log("request_failed", path=request.url.path, **exc.to_dict())
    return problem_response(
        status=status,
        title=exc.category.value.replace("_", " ").title(),
        detail=exc.message,
        instance=str(request.url),
        type_=exc.category.value.lower(),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions. Returns 500 with ProblemDetail."""
    logger.exception("unhandled_exception", path=request.url.path)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail=str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        instance=str(request.url),
    )

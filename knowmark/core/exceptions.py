"""
Domain errors and global exception handlers.

Every error is rendered as an RFC 7807 ``application/problem+json`` body so
clients see one shape no matter where the request failed. Stack traces and
driver errors never reach the client.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"


# ── Domain errors ───────────────────────────────────────────────────
class KnowmarkError(Exception):
    """Base error carrying everything needed for a problem response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Problem"

    def __init__(
        self,
        detail: str | None = None,
        *,
        title: str | None = None,
        **extra: Any,
    ) -> None:
        self.detail = detail
        if title is not None:
            self.title = title
        self.extra = extra
        super().__init__(f"{self.status_code}: {self.title}")


class ValidationError(KnowmarkError):
    status_code = status.HTTP_400_BAD_REQUEST
    title = "Invalid input."


class ConflictError(KnowmarkError):
    """Duplicate email or username."""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Already registered."


class AuthError(KnowmarkError):
    status_code = status.HTTP_401_UNAUTHORIZED
    title = "Unable to authorize user."


class NotFoundError(KnowmarkError):
    status_code = status.HTTP_404_NOT_FOUND
    title = "Not found."


class StoreError(KnowmarkError):
    """The user store failed; the driver error is chained, not exposed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    title = "Internal database error"


class InvalidTokenError(Exception):
    """A session token failed verification. Never shown to clients."""


class KeyMaterialError(RuntimeError):
    """Salt or signing keys cannot be loaded or persisted. Fatal at startup."""


# ── Problem responses ───────────────────────────────────────────────
def problem_response(
    status_code: int,
    title: str,
    detail: str | None = None,
    extra: dict[str, Any] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = dict(extra or {})
    body["type"] = "about:blank"
    body["title"] = title
    body["status"] = status_code
    if detail is not None:
        body["detail"] = detail
    return JSONResponse(
        status_code=status_code,
        content=body,
        media_type=PROBLEM_MEDIA_TYPE,
        headers={"Content-Language": "en"},
    )


async def _knowmark_error_handler(_request: Request, exc: KnowmarkError) -> JSONResponse:
    if isinstance(exc, StoreError):
        logger.debug("Store error answered with 500: %s", exc.detail)
        return problem_response(exc.status_code, exc.title)
    return problem_response(exc.status_code, exc.title, exc.detail, exc.extra)


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else None
    title = detail or "Problem"
    response = problem_response(exc.status_code, title)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    return problem_response(
        422,
        "Invalid request.",
        "Missing or malformed fields.",
        {"fields": fields},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return problem_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(KnowmarkError, _knowmark_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)

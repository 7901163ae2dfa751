"""API error handling middleware: consistent error responses.

Registers FastAPI exception handlers that convert domain exceptions into
standardised ``{"error": {"code": "...", "message": "...", "details": ...}}``
JSON responses.

Status code mapping:
- ``SubscriptionValidationError`` (including illegal transitions) → 422
- ``SubscriptionNotFoundError`` → 404 Not Found
- ``ValueError`` → 400 Bad Request
- Any other ``Exception`` → 500 Internal Server Error
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from subtrack.api.models import ErrorDetail, ErrorResponse
from subtrack.core.errors import (
    IllegalTransitionError,
    SubscriptionNotFoundError,
    SubscriptionValidationError,
)

logger = logging.getLogger(__name__)


async def _handle_subscription_validation(
    request: Request,
    exc: SubscriptionValidationError,
) -> JSONResponse:
    """Return 422 with the per-field message map."""
    code = (
        "ILLEGAL_STATUS_TRANSITION"
        if isinstance(exc, IllegalTransitionError)
        else "VALIDATION_ERROR"
    )
    logger.info("Rejected subscription payload: %s", exc.errors)
    body = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message="Validation failed",
            details=exc.errors,
        )
    )
    return JSONResponse(status_code=422, content=body.model_dump())


async def _handle_not_found(
    request: Request,
    exc: SubscriptionNotFoundError,
) -> JSONResponse:
    """Return 404 when a subscription id does not resolve."""
    logger.info("Subscription not found: %s", exc.subscription_id)
    body = ErrorResponse(
        error=ErrorDetail(
            code="SUBSCRIPTION_NOT_FOUND",
            message="Subscription not found",
        )
    )
    return JSONResponse(status_code=404, content=body.model_dump())


async def _handle_value_error(
    request: Request,
    exc: ValueError,
) -> JSONResponse:
    """Return 400 for bad query parameters and other value errors."""
    logger.info("Bad request: %s", exc)
    body = ErrorResponse(
        error=ErrorDetail(
            code="BAD_REQUEST",
            message=str(exc),
        )
    )
    return JSONResponse(status_code=400, content=body.model_dump())


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    Sits above the Starlette exception handler layer so that exceptions not
    caught by ``add_exception_handler`` still get the standard envelope.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            body = ErrorResponse(
                error=ErrorDetail(
                    code="INTERNAL_ERROR",
                    message="Internal server error",
                )
            )
            return JSONResponse(status_code=500, content=body.model_dump())


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    Handlers are looked up by the exception's MRO, so the validation and
    not-found handlers win over the ``ValueError`` one.
    """
    app.add_exception_handler(SubscriptionValidationError, _handle_subscription_validation)  # type: ignore[arg-type]
    app.add_exception_handler(SubscriptionNotFoundError, _handle_not_found)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, _handle_value_error)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)

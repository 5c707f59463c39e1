"""
Global error handling middleware for the sink application.

Catches PushTalkError subclasses, Pydantic validation errors, and
unhandled exceptions, converting them into the ``{success: false, error}``
envelope the delivery client understands.
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.core.exceptions import PushTalkError

logger = logging.getLogger(__name__)


def _envelope(error: str, code: str, timestamp: str | None = None) -> dict:
    return {
        "success": False,
        "error": error,
        "code": code,
        "timestamp": timestamp or datetime.now(UTC).isoformat(),
    }


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application.

    Registers three handlers in priority order:
    1. ``PushTalkError``: maps domain errors to their status code.
    2. ``RequestValidationError``: malformed request bodies (400).
    3. ``Exception``: catch-all for unexpected server errors (500).

    Args:
        app: The FastAPI application instance to register handlers on.
    """

    @app.exception_handler(PushTalkError)
    async def pushtalk_error_handler(_request: Request, exc: PushTalkError) -> JSONResponse:
        """Convert domain-specific errors into the failure envelope."""
        logger.warning("Upload failed: %s (%s)", exc.detail, exc.code)
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(exc.detail, exc.code, exc.timestamp),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic request validation errors (malformed body)."""
        return JSONResponse(
            status_code=400,
            content=_envelope(str(exc), "VALIDATION_ERROR"),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(_request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler; the reply never includes a stack trace."""
        logger.exception("Unhandled error in sink", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=_envelope("Internal server error", "INTERNAL_ERROR"),
        )

"""
Error Handling for the Analyze Product Relay

Centralized exception handlers for the FastAPI application: every
RelayException is logged with its code and turned into a JSON body,
and anything unexpected becomes a generic 500.

Usage:
    from services.error_handler import setup_error_handlers

    app = FastAPI()
    setup_error_handlers(app, debug=settings.is_development)
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from services.exceptions import (
    RelayException,
    AuthError,
    ValidationError,
    InvalidPriceError,
    ConfigurationError,
    UpstreamError,
    ImageFetchError,
    ReplyError,
)

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


# ============================================================
# Error Response Helpers
# ============================================================

def get_status_code(exc: RelayException) -> int:
    """Determine HTTP status code for exception."""
    if isinstance(exc, AuthError):
        return 401
    elif isinstance(exc, ValidationError):
        return 400
    # configuration, upstream and reply errors are all server-side
    return 500


def create_error_response(error: RelayException, status_code: int) -> JSONResponse:
    """Create a JSON error response carrying the CORS headers."""
    return JSONResponse(
        status_code=status_code,
        content=error.to_dict(),
        headers=CORS_HEADERS,
    )


def _log_context(exc: RelayException) -> str:
    """Exception-specific fields worth a log line, never sent to the client."""
    parts = []
    if isinstance(exc, InvalidPriceError):
        parts.append(f"store_price={str(exc.price_value)[:40]!r}")
    elif isinstance(exc, ValidationError) and exc.field:
        parts.append(f"field={exc.field}")
    if isinstance(exc, ConfigurationError) and exc.config_key:
        parts.append(f"config_key={exc.config_key}")
    if isinstance(exc, UpstreamError):
        parts.append(f"service={exc.service}")
    if isinstance(exc, ImageFetchError):
        parts.append(f"url={exc.url[:80]}")
    return " ".join(parts)


def _record_error(request: Request) -> None:
    state = getattr(request.app.state, "app_state", None)
    if state is not None:
        state.increment_stat("error_count")


# ============================================================
# Exception Handlers
# ============================================================

async def handle_relay_exception(request: Request, exc: RelayException) -> JSONResponse:
    """Handle RelayException and its subclasses."""
    status_code = get_status_code(exc)

    context = _log_context(exc)
    log_level = logging.WARNING if status_code < 500 else logging.ERROR
    logger.log(
        log_level,
        f"[{exc.code}] {exc}" + (f" ({context})" if context else ""),
        extra={"details": exc.details},
    )
    if isinstance(exc, ReplyError):
        logger.error(f"[{exc.code}] Raw AI response: {exc.raw_response[:500]}")

    _record_error(request)
    return create_error_response(exc, status_code)


def make_generic_handler(debug: bool):
    """Build the catch-all handler; the stack trace is only exposed in debug."""

    async def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            f"Unhandled exception in {request.url.path}: {type(exc).__name__}: {exc}",
            exc_info=True,
        )
        _record_error(request)

        content = {
            "error": "Internal server error",
            "details": str(exc),
        }
        if debug:
            content["stack"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        return JSONResponse(status_code=500, content=content, headers=CORS_HEADERS)

    return handle_generic_exception


# ============================================================
# Setup Function
# ============================================================

def setup_error_handlers(app: FastAPI, debug: bool = False):
    """
    Configure error handlers for the FastAPI application.

    Args:
        app: The FastAPI application instance
        debug: If True, include the stack trace in unexpected-error responses
    """
    app.add_exception_handler(RelayException, handle_relay_exception)
    app.add_exception_handler(Exception, make_generic_handler(debug))

    logger.info(f"[ERROR HANDLER] Configured (debug={debug})")

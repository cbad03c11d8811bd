from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from fastapi import FastAPI, Response

from routes import analysis_router
from services.app_state import AppState
from services.error_handler import setup_error_handlers

logger = logging.getLogger(__name__)


def create_app(state: AppState) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    State is attached before startup so routes can reach it even when
    the app is driven without running its lifespan (e.g. in tests).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info("[STARTUP] Analyze Product Relay starting...")
        logger.info(f"[STARTUP] Environment: {state.settings.environment}")
        state.get_http_client()

        yield

        logger.info("[SHUTDOWN] Analyze Product Relay shutting down...")
        logger.info(f"[SHUTDOWN] Total requests: {state.stats['total_requests']}")
        await state.aclose()

    app = FastAPI(
        title="Analyze Product Relay",
        description="Buy/pass reseller analysis relayed to Gemini with normalized output",
        lifespan=lifespan,
    )
    app.state.app_state = state

    setup_error_handlers(app, debug=state.settings.is_development)

    app.include_router(analysis_router)

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "total_requests": state.stats["total_requests"],
            "buy_count": state.stats["buy_count"],
            "pass_count": state.stats["pass_count"],
            "error_count": state.stats["error_count"],
            "session_seconds": round(state.get_session_duration(), 1),
        }

    return app


"""
API client initialization.

Creates the pooled HTTP client and the Gemini client bound to it.
"""

import logging

import httpx

from config.settings import Settings
from services.exceptions import MissingAPIKeyError
from services.gemini import GeminiClient

logger = logging.getLogger(__name__)


def create_http_client() -> httpx.AsyncClient:
    """Create the shared async HTTP client used for every outbound call."""
    client = httpx.AsyncClient(
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
    )
    logger.info("[CLIENTS] HTTP client initialized")
    return client


def create_gemini_client(settings: Settings, http_client: httpx.AsyncClient) -> GeminiClient:
    """
    Create a Gemini client for one request.

    Raises MissingAPIKeyError when GEMINI_API_KEY is not configured.
    """
    if not settings.gemini_api_key:
        logger.error("[CLIENTS] No Gemini API key configured")
        raise MissingAPIKeyError("Gemini", config_key="GEMINI_API_KEY")

    return GeminiClient(
        api_key=settings.gemini_api_key,
        api_url=settings.gemini_api_url,
        http_client=http_client,
        timeout=settings.ai_timeout,
    )

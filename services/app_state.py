"""
Application State Management for the Analyze Product Relay

Holds the per-process objects every request shares: settings, the pooled
HTTP client, the response normalizer and session counters.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional
import logging

import httpx

from config.settings import Settings
from pipeline.normalizer import ResponseNormalizer
from services.clients import create_http_client

logger = logging.getLogger(__name__)


def _fresh_stats() -> Dict[str, Any]:
    return {
        "total_requests": 0,
        "ai_calls": 0,
        "buy_count": 0,
        "pass_count": 0,
        "error_count": 0,
        "session_start": datetime.now().isoformat(),
    }


@dataclass
class AppState:
    """
    Centralized application state.

    Requests never mutate anything here except the stats counters.
    """

    settings: Settings = field(default_factory=Settings)
    http_client: Optional[httpx.AsyncClient] = None
    _normalizer: Optional[ResponseNormalizer] = field(default=None, repr=False)

    # Session statistics
    stats: Dict[str, Any] = field(default_factory=_fresh_stats)

    def get_http_client(self) -> httpx.AsyncClient:
        """Shared client for connection pooling, created on first use."""
        if self.http_client is None:
            self.http_client = create_http_client()
        return self.http_client

    @property
    def normalizer(self) -> ResponseNormalizer:
        if self._normalizer is None:
            self._normalizer = ResponseNormalizer(
                config=self.settings.normalizer,
                http_client=self.get_http_client(),
            )
        return self._normalizer

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
            self._normalizer = None

    def increment_stat(self, key: str, amount: int = 1) -> None:
        """Safely increment a statistics counter."""
        if key in self.stats:
            self.stats[key] += amount

    def record_verdict(self, verdict: str) -> None:
        """Record a normalized verdict in stats."""
        if verdict == "BUY":
            self.stats["buy_count"] += 1
        else:
            self.stats["pass_count"] += 1

    def get_session_duration(self) -> float:
        """Get session duration in seconds."""
        start = datetime.fromisoformat(self.stats["session_start"])
        return (datetime.now() - start).total_seconds()


def get_app_state_from_request(request) -> "AppState":
    """
    Get AppState from request.

    Usage in routes:
        from services.app_state import get_app_state_from_request

        @router.post("/endpoint")
        async def endpoint(request: Request):
            app_state = get_app_state_from_request(request)
            app_state.increment_stat("total_requests")
    """
    return request.app.state.app_state

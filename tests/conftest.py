import json

import httpx
import pytest
from fastapi.testclient import TestClient

from config.settings import NormalizerConfig, Settings
from services.app_factory import create_app
from services.app_state import AppState

SUPABASE_URL = "https://proj.supabase.co"
EBAY_LISTING = "https://www.ebay.com/itm/1234567890"
AMAZON_LISTING = "https://www.amazon.com/dp/B000TEST01"


def gemini_reply(text):
    """Wrap reply text the way generateContent returns it"""
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def model_json(**overrides):
    reply = {
        "verdict": "BUY",
        "market_price": 80,
        "net_profit": 50.31,
        "product_name": "Nintendo Switch OLED",
        "velocity_score": "High",
        "reasoning": "Strong sell-through",
    }
    reply.update(overrides)
    return json.dumps(reply)


class FakeUpstream:
    """
    Programmable stand-in for every host the relay talks to.

    Each attribute can be replaced per test; `calls` records every request.
    """

    def __init__(self):
        self.calls = []
        self.user_status = 200
        self.user_error = None
        self.user_body = {"id": "user-1", "email": "seller@example.com"}
        self.gemini_status = 200
        self.gemini_body = gemini_reply(model_json())
        self.link_status = {}
        self.image_bytes = b""
        self.image_type = "image/png"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        host = request.url.host

        if host == "proj.supabase.co":
            if self.user_error is not None:
                raise self.user_error
            return httpx.Response(self.user_status, json=self.user_body)
        if host == "generativelanguage.googleapis.com":
            if isinstance(self.gemini_body, str):
                return httpx.Response(self.gemini_status, text=self.gemini_body)
            return httpx.Response(self.gemini_status, json=self.gemini_body)
        if host == "images.example.com":
            return httpx.Response(200, content=self.image_bytes,
                                  headers={"content-type": self.image_type})

        status = self.link_status.get(str(request.url), 404)
        if isinstance(status, Exception):
            raise status
        return httpx.Response(status)

    def requests_to(self, host):
        return [r for r in self.calls if r.url.host == host]


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def settings():
    return Settings(
        gemini_api_key="test-key",
        supabase_url=SUPABASE_URL,
        supabase_anon_key="anon-key",
        normalizer=NormalizerConfig(validate_schema=True, probe_urls=True),
    )


@pytest.fixture
def app_state(settings, upstream):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return AppState(settings=settings, http_client=client)


@pytest.fixture
def client(app_state):
    app = create_app(app_state)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer user-jwt"}

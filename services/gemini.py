"""
Gemini generateContent client.

Posts the analysis payload and returns the first candidate's text.
"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from services.exceptions import EmptyReplyError, UpstreamError

logger = logging.getLogger(__name__)


def extract_reply_text(data: Any) -> Optional[str]:
    """Read candidates[0].content.parts[0].text, None if any step is missing."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) and text else None


def extract_error_details(error_text: str) -> str:
    """Prefer the structured error message over the raw body."""
    try:
        error_json = json.loads(error_text)
    except (json.JSONDecodeError, ValueError):
        return error_text or "Unknown Gemini API error"

    if isinstance(error_json, dict):
        error = error_json.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if error_json.get("message"):
            return error_json["message"]
    return error_text


class GeminiClient:
    """
    Thin async wrapper over the generateContent REST endpoint.

    The API key travels as the `key` query parameter and is never logged.
    """

    def __init__(self, api_key: str, api_url: str, http_client: httpx.AsyncClient,
                 timeout: float = 120.0):
        self.api_key = api_key
        self.api_url = api_url
        self.http_client = http_client
        self.timeout = timeout

    async def generate(self, payload: Dict[str, Any]) -> str:
        """Send payload and return the model's reply text."""
        parts = payload.get("contents", [{}])[0].get("parts", [])
        logger.info(
            f"[GEMINI] Calling {self.api_url} "
            f"(hasImage={any('inline_data' in p for p in parts)}, parts={len(parts)})"
        )

        try:
            response = await self.http_client.post(
                self.api_url,
                params={"key": self.api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"[GEMINI] Request failed: {type(e).__name__}: {e}")
            raise UpstreamError(
                service="gemini",
                message="Failed to analyze product with AI",
                details=str(e) or type(e).__name__,
                cause=e,
            )

        logger.info(f"[GEMINI] Response status: {response.status_code}")

        if not response.is_success:
            error_text = response.text
            logger.error(f"[GEMINI] API error: {error_text[:500]}")
            raise UpstreamError(
                service="gemini",
                message="Failed to analyze product with AI",
                details=extract_error_details(error_text),
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        text = extract_reply_text(data)
        if text is None:
            logger.error("[GEMINI] Reply carried no candidate text")
            raise EmptyReplyError()
        return text

"""
Supabase bearer-token verification.

Resolves the caller's Authorization header to a user record through the
GoTrue `/auth/v1/user` endpoint.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from config.settings import Settings
from services.exceptions import AuthError, ConfigurationError, MissingAuthHeaderError

logger = logging.getLogger(__name__)

DEFAULT_AUTH_DETAILS = "Invalid or expired JWT token. Please log in again."


def require_auth_header(auth_header: Optional[str]) -> str:
    """Return the header as a Bearer credential, raising when it is missing."""
    if not auth_header:
        raise MissingAuthHeaderError()
    return auth_header if auth_header.startswith("Bearer ") else f"Bearer {auth_header}"


def require_supabase_config(settings: Settings) -> None:
    if not settings.supabase_url or not settings.supabase_anon_key:
        logger.error(
            f"[AUTH] Missing Supabase configuration "
            f"(url={bool(settings.supabase_url)}, anon_key={bool(settings.supabase_anon_key)})"
        )
        raise ConfigurationError(
            "Server configuration error: Missing Supabase credentials",
            config_key="SUPABASE_URL",
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or DEFAULT_AUTH_DETAILS
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return DEFAULT_AUTH_DETAILS


async def verify_user(
    bearer_token: str,
    settings: Settings,
    http_client: httpx.AsyncClient,
) -> Dict[str, Any]:
    """
    Look up the user behind bearer_token.

    The service-role key is used as `apikey` when configured, otherwise
    the anon key. Every failure, including network errors, is an AuthError.
    """
    client_key = settings.supabase_service_role_key or settings.supabase_anon_key
    url = f"{settings.supabase_url.rstrip('/')}/auth/v1/user"

    try:
        response = await http_client.get(
            url,
            headers={"apikey": client_key, "Authorization": bearer_token},
            timeout=settings.auth_timeout,
        )
    except httpx.HTTPError as e:
        logger.error(f"[AUTH] Exception in user lookup: {type(e).__name__}: {e}")
        raise AuthError(details=str(e) or "Authentication failed", cause=e)

    if response.status_code != 200:
        details = _error_message(response)
        logger.error(f"[AUTH] User lookup failed ({response.status_code}): {details}")
        raise AuthError(details=details)

    try:
        user = response.json()
    except ValueError:
        user = None

    if not isinstance(user, dict) or not user.get("id"):
        logger.error("[AUTH] Authentication failed: No user found")
        raise AuthError(details=DEFAULT_AUTH_DETAILS)

    logger.info(f"[AUTH] Authenticated user {user['id']}")
    return user

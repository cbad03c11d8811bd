"""
Marketplace Link Service

Checks that direct eBay/Amazon listing URLs suggested by the model are
live, and builds search-results URLs to use when they are not.
"""

import logging
import urllib.parse
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

EBAY_SEARCH_URL = "https://www.ebay.com/sch/i.html?_nkw={query}"
AMAZON_SEARCH_URL = "https://www.amazon.com/s?k={query}"


def _encode_query(title: str) -> str:
    # same escaping rules as encodeURIComponent
    return urllib.parse.quote(title, safe="-_.!~*'()")


def get_ebay_search_url(title: str) -> str:
    """Fallback: Generate eBay search URL from product name"""
    return EBAY_SEARCH_URL.format(query=_encode_query(title))


def get_amazon_search_url(title: str) -> str:
    """Fallback: Generate Amazon search URL from product name"""
    return AMAZON_SEARCH_URL.format(query=_encode_query(title))


SEARCH_URL_BUILDERS = {
    "ebay": get_ebay_search_url,
    "amazon": get_amazon_search_url,
}


def clean_listing_url(value) -> Optional[str]:
    """Return the value if it is an absolute http(s) URL, None otherwise."""
    if not isinstance(value, str):
        return None
    url = value.strip()
    if not url:
        return None
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return url


async def probe_url(
    client: httpx.AsyncClient,
    url: str,
    user_agent: str,
    timeout: float = 8.0,
) -> bool:
    """
    Issue a single GET against url and report whether it looks live.

    Redirects are followed; the final status must be in [200, 400).
    Network failures count as dead links, never as errors.
    """
    try:
        response = await client.get(
            url,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        logger.info(f"[PROBE] {url[:80]} failed: {type(e).__name__}: {e}")
        return False

    ok = 200 <= response.status_code < 400
    logger.info(f"[PROBE] {url[:80]} -> {response.status_code} ({'live' if ok else 'dead'})")
    return ok

"""
Response Normalizer

Turns the model's freeform reply into the fixed AnalysisResult schema.

Stages:
1. extract_json              - whole-string parse, else first '{' .. last '}'
2. validate_schema           - optional, permissive pydantic model
3. coerce                    - defaults, type coercion, derived fields
4. resolve_marketplace_links - optional live probe of eBay/Amazon URLs,
                               search-URL fallback when a link is dead

Parse and schema failures are terminal; a dead marketplace link is not.
"""

import asyncio
import json
import logging
import math
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from config.settings import NormalizerConfig
from services.exceptions import ParseError, SchemaError
from services.marketplace_links import (
    SEARCH_URL_BUILDERS,
    clean_listing_url,
    probe_url,
)

logger = logging.getLogger(__name__)

VERDICTS = ("BUY", "PASS")
VELOCITY_SCORES = ("High", "Med", "Low")
DEFAULT_VELOCITY = "Med"
DEFAULT_PRODUCT_NAME = "Unknown Product"
DEFAULT_REASONING = "No reasoning provided"
DEFAULT_PRICE_SOURCE = "Market analysis"

# Leading numeric prefix, the way a lenient float parse reads "12.5 USD"
_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class ModelReply(BaseModel):
    """Permissive shape of the model's JSON reply. Unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    verdict: str
    market_price: Optional[float]
    net_profit: Optional[float]
    product_name: str
    velocity_score: str

    ebay_price: Optional[float] = None
    amazon_price: Optional[float] = None
    current_price: Optional[float] = None
    sales_tax_rate: Optional[float] = None
    sales_tax_amount: Optional[float] = None
    fee_percentage: Optional[float] = None
    fees_amount: Optional[float] = None
    shipping_cost: Optional[float] = None


@dataclass
class AnalysisResult:
    """Normalized analysis returned to the caller"""
    verdict: str
    market_price: float
    net_profit: float
    reasoning: str
    velocity_score: str
    product_name: str
    ebay_price: Optional[float]
    amazon_price: Optional[float]
    current_price: Optional[float]
    market_price_source: str
    sales_tax_rate: float
    sales_tax_amount: float
    fee_percentage: float
    fees_amount: float
    shipping_cost: Optional[float]
    profit_calculation: str
    market_analysis: Optional[str]
    product_image_url: Optional[str]
    condition: Optional[str] = None
    ebay_url: Optional[str] = None
    amazon_url: Optional[str] = None
    ebay_search_url: Optional[str] = None
    amazon_search_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================================
# Field helpers
# ============================================================

def parse_number(value: Any) -> Optional[float]:
    """
    Read a number out of a JSON value.

    Numbers pass through, strings are read up to the first non-numeric
    character after dropping a leading '$' and thousands separators.
    Anything else (including booleans, NaN and infinities) is None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        text = value.strip().lstrip("$").replace(",", "")
        match = _NUMBER_PREFIX.match(text)
        if not match:
            return None
        number = float(match.group(1))
        return number if math.isfinite(number) else None
    return None


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _number_or(value: Any, default: Optional[float]) -> Optional[float]:
    if _is_absent(value):
        return default
    number = parse_number(value)
    return default if number is None else number


def _text_or(value: Any, default: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return default


def _plain(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


def normalize_verdict(value: Any) -> str:
    if isinstance(value, str) and value.strip().upper() == "BUY":
        return "BUY"
    return "PASS"


def normalize_velocity(payload: Dict[str, Any]) -> str:
    # camelCase key is read as a fallback only
    value = payload.get("velocity_score")
    if value is None:
        value = payload.get("velocityScore")
    return value if value in VELOCITY_SCORES else DEFAULT_VELOCITY


def build_profit_calculation(
    market_price: float,
    store_price: float,
    sales_tax_amount: float,
    sales_tax_rate: float,
    fees_amount: float,
    fee_percentage: float,
    shipping_cost: Optional[float],
    net_profit: float,
) -> str:
    shipping = f" - ${shipping_cost:.2f} shipping" if shipping_cost is not None else ""
    return (
        f"${market_price:.2f} market price - ${store_price:.2f} buy price"
        f" - ${sales_tax_amount:.2f} sales tax ({_plain(sales_tax_rate)}%)"
        f" - ${fees_amount:.2f} fees ({_plain(fee_percentage)}%)"
        f"{shipping} = ${net_profit:.2f} profit"
    )


# ============================================================
# Normalizer
# ============================================================

class ResponseNormalizer:
    """
    Normalizes raw AI replies into AnalysisResult objects.

    Schema validation and URL probing are switched by NormalizerConfig;
    the remaining stages always run.
    """

    def __init__(self, config: Optional[NormalizerConfig] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.config = config or NormalizerConfig()
        self.http_client = http_client

    # --------------------------------------------------------
    # Stage 1: JSON extraction
    # --------------------------------------------------------

    def extract_json(self, raw_text: str) -> Dict[str, Any]:
        """Pull the JSON object out of the reply, tolerating prose and fences."""
        text = raw_text or ""

        try:
            payload = json.loads(text)
            if isinstance(payload, dict):
                return payload
        except (json.JSONDecodeError, ValueError):
            pass

        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            logger.error(f"[NORMALIZE] No JSON object in reply: {text[:200]}")
            raise ParseError(raw_text)

        try:
            payload = json.loads(text[start:end + 1])
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"[NORMALIZE] Failed to parse JSON: {e}")
            raise ParseError(raw_text, cause=e)

        if not isinstance(payload, dict):
            raise ParseError(raw_text)
        return payload

    # --------------------------------------------------------
    # Stage 2: schema check
    # --------------------------------------------------------

    def validate_schema(self, payload: Dict[str, Any], raw_text: str) -> None:
        """Reject replies missing required fields or with non-numeric numbers."""
        try:
            ModelReply.model_validate(payload)
        except PydanticValidationError as e:
            fields = sorted({
                ".".join(str(part) for part in err["loc"]) or "<root>"
                for err in e.errors()
            })
            logger.error(f"[NORMALIZE] Schema check failed: {fields}")
            raise SchemaError(raw_text, fields, cause=e)

    # --------------------------------------------------------
    # Stage 3: coercion and derived fields
    # --------------------------------------------------------

    def coerce(self, payload: Dict[str, Any], store_price: float,
               condition: Optional[str] = None) -> AnalysisResult:
        market_price = _number_or(payload.get("market_price"), 0.0)
        net_profit = _number_or(payload.get("net_profit"), 0.0)

        sales_tax_rate = _number_or(payload.get("sales_tax_rate"), self.config.default_sales_tax_rate)
        sales_tax_amount = _number_or(
            payload.get("sales_tax_amount"), store_price * sales_tax_rate / 100
        )
        fee_percentage = _number_or(payload.get("fee_percentage"), self.config.default_fee_percentage)
        fees_amount = _number_or(
            payload.get("fees_amount"), market_price * self.config.default_fee_percentage / 100
        )
        shipping_cost = _number_or(payload.get("shipping_cost"), None)

        profit_calculation = _text_or(payload.get("profit_calculation"), None)
        if profit_calculation is None:
            profit_calculation = build_profit_calculation(
                market_price, store_price, sales_tax_amount, sales_tax_rate,
                fees_amount, fee_percentage, shipping_cost, net_profit,
            )

        return AnalysisResult(
            verdict=normalize_verdict(payload.get("verdict")),
            market_price=market_price,
            net_profit=net_profit,
            reasoning=_text_or(payload.get("reasoning"), DEFAULT_REASONING),
            velocity_score=normalize_velocity(payload),
            product_name=_text_or(payload.get("product_name"), DEFAULT_PRODUCT_NAME),
            ebay_price=_number_or(payload.get("ebay_price"), None),
            amazon_price=_number_or(payload.get("amazon_price"), None),
            current_price=_number_or(payload.get("current_price"), None),
            market_price_source=_text_or(payload.get("market_price_source"), DEFAULT_PRICE_SOURCE),
            sales_tax_rate=sales_tax_rate,
            sales_tax_amount=sales_tax_amount,
            fee_percentage=fee_percentage,
            fees_amount=fees_amount,
            shipping_cost=shipping_cost,
            profit_calculation=profit_calculation,
            market_analysis=_text_or(payload.get("market_analysis"), None),
            product_image_url=_text_or(payload.get("product_image_url"), None),
            condition=condition,
        )

    # --------------------------------------------------------
    # Stage 4: marketplace links
    # --------------------------------------------------------

    async def resolve_marketplace_links(self, result: AnalysisResult,
                                        payload: Dict[str, Any]) -> AnalysisResult:
        """Keep live listing URLs, substitute search URLs for the rest."""
        links = {
            "ebay": clean_listing_url(payload.get("ebay_url")),
            "amazon": clean_listing_url(payload.get("amazon_url")),
        }

        if self.config.probe_urls:
            to_probe = [name for name, url in links.items() if url]
            if to_probe:
                verdicts = await self._probe_all([links[name] for name in to_probe])
                for name, alive in zip(to_probe, verdicts):
                    if not alive:
                        links[name] = None

        for name, url in links.items():
            search_url = None if url else SEARCH_URL_BUILDERS[name](result.product_name)
            setattr(result, f"{name}_url", url)
            setattr(result, f"{name}_search_url", search_url)
        return result

    async def _probe_all(self, urls: List[str]) -> List[bool]:
        def probes(client):
            return [
                probe_url(client, url, self.config.user_agent, self.config.probe_timeout)
                for url in urls
            ]

        if self.http_client is not None:
            return list(await asyncio.gather(*probes(self.http_client)))
        async with httpx.AsyncClient() as client:
            return list(await asyncio.gather(*probes(client)))

    # --------------------------------------------------------
    # Full pipeline
    # --------------------------------------------------------

    async def normalize(self, raw_text: str, store_price: float,
                        condition: Optional[str] = None) -> AnalysisResult:
        payload = self.extract_json(raw_text)
        if self.config.validate_schema:
            self.validate_schema(payload, raw_text)

        result = self.coerce(payload, store_price, condition)
        result = await self.resolve_marketplace_links(result, payload)

        logger.info(
            f"[NORMALIZE] {result.verdict} | {result.product_name[:50]} | "
            f"market=${result.market_price:.2f} profit=${result.net_profit:.2f} | "
            f"velocity={result.velocity_score}"
        )
        return result

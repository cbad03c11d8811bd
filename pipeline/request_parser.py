"""
Request parsing for the analysis pipeline.

Decodes the JSON body of an analyze request and validates store_price
and condition.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Optional

from pipeline.prompts import CONDITIONS, DEFAULT_CONDITION
from services.exceptions import InvalidPriceError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class AnalysisRequest:
    """One analyze call, as sent by the client"""
    store_price: float
    condition: str = DEFAULT_CONDITION
    image_base64: Optional[str] = None
    image_url: Optional[str] = None
    barcode: Optional[str] = None


def decode_body(body: bytes) -> dict:
    """Decode the raw body; anything that is not a JSON object is rejected."""
    try:
        data = json.loads(body)
    except ValueError as e:
        logger.warning(f"[REQUEST] Failed to parse request body: {e}")
        raise ValidationError("Invalid request body", details=str(e), cause=e)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body", details="Expected a JSON object")
    return data


def _optional_text(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def parse_store_price(value: Any) -> float:
    if value is None or isinstance(value, bool):
        raise InvalidPriceError(value)
    try:
        price = float(value)
    except (TypeError, ValueError, OverflowError):
        raise InvalidPriceError(value)
    if not math.isfinite(price) or price <= 0:
        raise InvalidPriceError(value)
    return price


def parse_condition(value: Any) -> str:
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_CONDITION
    if value not in CONDITIONS:
        raise ValidationError(
            "Invalid condition",
            field="condition",
            details=f"condition must be one of: {', '.join(CONDITIONS)}",
        )
    return value


def parse_analysis_request(data: dict) -> AnalysisRequest:
    """Validate a decoded body and build the AnalysisRequest."""
    request = AnalysisRequest(
        store_price=parse_store_price(data.get("store_price")),
        condition=parse_condition(data.get("condition")),
        image_base64=_optional_text(data, "image_base64"),
        image_url=_optional_text(data, "image_url"),
        barcode=_optional_text(data, "barcode"),
    )

    logger.info(
        f"[REQUEST] store_price=${request.store_price:.2f} condition={request.condition} "
        f"image={'base64' if request.image_base64 else ('url' if request.image_url else 'none')} "
        f"barcode={'yes' if request.barcode else 'no'}"
    )
    return request

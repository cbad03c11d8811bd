"""
Analysis Route - the analyze-product endpoint

Runs one request through the relay:
auth header -> Supabase config -> user lookup -> body -> Gemini key ->
store_price/condition -> image fetch -> Gemini -> normalize -> respond.
Every failure is raised as a RelayException and rendered by the error
handler.
"""

import logging
import time as _time

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from pipeline.normalizer import AnalysisResult
from pipeline.prompts import build_gemini_payload
from pipeline.request_parser import decode_body, parse_analysis_request
from services.app_state import AppState, get_app_state_from_request
from services.auth import require_auth_header, require_supabase_config, verify_user
from services.clients import create_gemini_client
from services.error_handler import CORS_HEADERS
from services.image_fetcher import fetch_image

logger = logging.getLogger(__name__)

# Create router for analysis endpoints
router = APIRouter()

ANALYZE_PATH = "/analyze-product"


@router.options(ANALYZE_PATH)
async def analyze_product_preflight() -> Response:
    """CORS preflight."""
    return Response(status_code=204, headers=CORS_HEADERS)


@router.post(ANALYZE_PATH)
async def analyze_product(request: Request) -> JSONResponse:
    state: AppState = get_app_state_from_request(request)
    settings = state.settings
    start_time = _time.time()
    state.increment_stat("total_requests")

    logger.info(f"[REQUEST] {request.method} {request.url.path}")

    bearer_token = require_auth_header(request.headers.get("Authorization"))
    require_supabase_config(settings)
    http_client = state.get_http_client()
    await verify_user(bearer_token, settings, http_client)

    data = decode_body(await request.body())
    gemini = create_gemini_client(settings, http_client)
    analysis_request = parse_analysis_request(data)

    image_base64 = analysis_request.image_base64
    image_mime_type = "image/jpeg"
    if not image_base64 and analysis_request.image_url:
        fetched = await fetch_image(http_client, analysis_request.image_url, settings.image_timeout)
        image_base64 = fetched.data
        image_mime_type = fetched.media_type

    payload = build_gemini_payload(
        store_price=analysis_request.store_price,
        condition=analysis_request.condition,
        image_base64=image_base64,
        image_mime_type=image_mime_type,
        barcode=analysis_request.barcode,
    )

    state.increment_stat("ai_calls")
    reply_text = await gemini.generate(payload)

    result: AnalysisResult = await state.normalizer.normalize(
        reply_text,
        analysis_request.store_price,
        analysis_request.condition,
    )
    state.record_verdict(result.verdict)

    logger.info(f"[TIMING] TOTAL: {(_time.time() - start_time) * 1000:.0f}ms | verdict={result.verdict}")
    return JSONResponse(content=result.to_dict(), headers=CORS_HEADERS)

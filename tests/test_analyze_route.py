import base64
import io
import json
import logging

import httpx
from PIL import Image

from tests.conftest import EBAY_LISTING, gemini_reply, model_json

ANALYZE = "/analyze-product"


def post(client, body, headers=None):
    return client.post(ANALYZE, json=body, headers=headers or {})


# CORS
def test_preflight_returns_204_with_cors_headers(client):
    response = client.options(ANALYZE)
    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert "authorization" in response.headers["access-control-allow-headers"]


# Authentication
def test_missing_authorization_header_is_401(client, upstream):
    response = post(client, {"store_price": 10})
    assert response.status_code == 401
    assert response.json() == {"error": "Missing authorization header"}
    assert response.headers["access-control-allow-origin"] == "*"
    assert upstream.calls == []


def test_missing_supabase_config_is_500(client, settings):
    settings.supabase_url = ""
    response = post(client, {"store_price": 10}, {"Authorization": "Bearer x"})
    assert response.status_code == 500
    assert response.json()["error"] == "Server configuration error: Missing Supabase credentials"


def test_rejected_token_is_401(client, upstream, auth_headers):
    upstream.user_status = 401
    upstream.user_body = {"msg": "invalid JWT: token is expired"}
    response = post(client, {"store_price": 10}, auth_headers)
    assert response.status_code == 401
    assert response.json() == {
        "error": "Unauthorized",
        "details": "invalid JWT: token is expired",
        "code": 401,
    }


def test_auth_network_failure_is_401(client, upstream, auth_headers):
    upstream.user_error = httpx.ConnectError("connection refused")
    response = post(client, {"store_price": 10}, auth_headers)
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_bearer_prefix_added_and_service_key_used(client, upstream, settings):
    settings.supabase_service_role_key = "service-key"
    post(client, {"store_price": 10}, {"Authorization": "raw-token"})
    auth_call = upstream.requests_to("proj.supabase.co")[0]
    assert auth_call.url.path == "/auth/v1/user"
    assert auth_call.headers["authorization"] == "Bearer raw-token"
    assert auth_call.headers["apikey"] == "service-key"


# Request validation
def test_malformed_body_is_400(client, auth_headers):
    response = client.post(
        ANALYZE,
        content=b"{not json",
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body"


def test_zero_store_price_is_400(client, auth_headers):
    response = post(client, {"store_price": 0}, auth_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Valid store_price is required"}


def test_negative_store_price_is_400(client, auth_headers):
    response = post(client, {"store_price": -5}, auth_headers)
    assert response.status_code == 400


def test_missing_store_price_is_400(client, auth_headers, upstream):
    response = post(client, {"barcode": "012345678905"}, auth_headers)
    assert response.status_code == 400
    assert upstream.requests_to("generativelanguage.googleapis.com") == []


def test_unknown_condition_is_400(client, auth_headers):
    response = post(client, {"store_price": 5, "condition": "Refurbished"}, auth_headers)
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid condition"


def test_missing_gemini_key_is_500(client, settings, auth_headers):
    settings.gemini_api_key = None
    response = post(client, {"store_price": 10}, auth_headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Gemini API key not configured"}


# Gemini call
def test_successful_analysis(client, upstream, auth_headers):
    upstream.gemini_body = gemini_reply(
        "Sure! ```json\n" + model_json(ebay_url=EBAY_LISTING, shipping_cost=7) + "\n```"
    )
    upstream.link_status = {EBAY_LISTING: 200}

    response = post(client, {"store_price": 9.99, "barcode": "045496883843"}, auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["verdict"] == "BUY"
    assert body["market_price"] == 80
    assert body["velocity_score"] == "High"
    assert body["sales_tax_rate"] == 8
    assert body["sales_tax_amount"] == 9.99 * 8 / 100
    assert body["fees_amount"] == 12
    assert body["ebay_url"] == EBAY_LISTING
    assert body["ebay_search_url"] is None
    assert body["amazon_url"] is None
    assert body["amazon_search_url"] == "https://www.amazon.com/s?k=Nintendo%20Switch%20OLED"
    assert body["condition"] == "Used"
    assert response.headers["access-control-allow-origin"] == "*"


def test_gemini_payload_shape(client, upstream, auth_headers):
    post(client, {"store_price": 12.5, "image_base64": "aGVsbG8=", "barcode": "123",
                  "condition": "New in Box"}, auth_headers)

    call = upstream.requests_to("generativelanguage.googleapis.com")[0]
    assert call.url.path.endswith("/gemini-3-flash-preview:generateContent")
    assert call.url.params["key"] == "test-key"

    parts = json.loads(call.content)["contents"][0]["parts"]
    assert len(parts) == 4
    assert '"New in Box"' in parts[0]["text"]
    assert parts[1] == {"inline_data": {"mime_type": "image/jpeg", "data": "aGVsbG8="}}
    assert parts[2] == {"text": "Barcode: 123"}
    assert parts[3] == {"text": "Store Price: $12.50\nItem Condition: New in Box"}


def test_image_url_is_fetched_and_inlined(client, upstream, auth_headers):
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), (255, 0, 0)).save(buffer, format="PNG")
    upstream.image_bytes = buffer.getvalue()

    post(client, {"store_price": 3, "image_url": "https://images.example.com/p.png"}, auth_headers)

    call = upstream.requests_to("generativelanguage.googleapis.com")[0]
    inline = json.loads(call.content)["contents"][0]["parts"][1]["inline_data"]
    assert inline["mime_type"] == "image/png"
    assert base64.b64decode(inline["data"]) == upstream.image_bytes


def test_upstream_error_detail_forwarded(client, upstream, auth_headers):
    upstream.gemini_status = 429
    upstream.gemini_body = {"error": {"code": 429, "message": "Resource has been exhausted"}}
    response = post(client, {"store_price": 10}, auth_headers)
    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to analyze product with AI",
        "details": "Resource has been exhausted",
        "status": 429,
    }


def test_upstream_plain_text_error_forwarded(client, upstream, auth_headers):
    upstream.gemini_status = 503
    upstream.gemini_body = "Service Unavailable"
    response = post(client, {"store_price": 10}, auth_headers)
    assert response.status_code == 500
    assert response.json()["details"] == "Service Unavailable"


def test_empty_ai_reply_is_500(client, upstream, auth_headers):
    upstream.gemini_body = {"candidates": []}
    response = post(client, {"store_price": 10}, auth_headers)
    assert response.status_code == 500
    assert response.json() == {"error": "No response from AI"}


def test_reply_without_json_is_500_with_raw_response(client, upstream, auth_headers):
    upstream.gemini_body = gemini_reply("Sorry, I can't identify this product.")
    response = post(client, {"store_price": 10}, auth_headers)
    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Failed to parse AI response"
    assert body["raw_response"] == "Sorry, I can't identify this product."


def test_reply_missing_required_fields_is_500(client, upstream, auth_headers):
    raw = json.dumps({"verdict": "PASS"})
    upstream.gemini_body = gemini_reply(raw)
    response = post(client, {"store_price": 10}, auth_headers)
    assert response.status_code == 500
    body = response.json()
    assert body["raw_response"] == raw
    assert "product_name" in body["details"]["fields"]


# Health
def test_health_counts_requests(client, auth_headers):
    post(client, {"store_price": 10}, auth_headers)
    post(client, {"store_price": 0}, auth_headers)

    stats = client.get("/health").json()
    assert stats["status"] == "healthy"
    assert stats["total_requests"] == 2
    assert stats["buy_count"] == 1
    assert stats["error_count"] == 1


def test_oversized_store_price_literal_is_400(client, auth_headers):
    response = client.post(
        ANALYZE,
        content=b'{"store_price": ' + b"9" * 5000 + b"}",
        headers={**auth_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request body"


def test_upstream_error_log_names_service(client, upstream, auth_headers, caplog):
    upstream.gemini_status = 500
    upstream.gemini_body = {"error": {"message": "Internal"}}
    with caplog.at_level(logging.WARNING, logger="services.error_handler"):
        post(client, {"store_price": 10}, auth_headers)
    assert any("service=gemini" in r.getMessage() for r in caplog.records)


def test_invalid_price_log_names_value(client, auth_headers, caplog):
    with caplog.at_level(logging.WARNING, logger="services.error_handler"):
        post(client, {"store_price": -5}, auth_headers)
    assert any("store_price='-5'" in r.getMessage() for r in caplog.records)

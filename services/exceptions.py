"""
Custom Exception Hierarchy for the Analyze Product Relay

Every failure the relay reports to a caller is one of these exceptions.
The error handler maps each class to an HTTP status and serializes it
with to_dict().

Usage:
    from services.exceptions import (
        RelayException,
        AuthError,
        ValidationError,
        UpstreamError,
        ParseError,
    )

    try:
        result = await normalizer.normalize(raw_text, store_price, condition)
    except ParseError as e:
        logger.error(f"[NORMALIZE] {e}")
        raise
"""

from typing import Any, Dict, List, Optional


class RelayException(Exception):
    """
    Base exception for all relay errors.

    `message` becomes the `error` field of the response body; `details`
    is forwarded as-is when present.
    """

    def __init__(
        self,
        message: str,
        code: str = "RELAY_ERROR",
        details: Any = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# ============================================================
# Authentication Errors
# ============================================================

class AuthError(RelayException):
    """Missing, invalid or expired credential."""

    def __init__(
        self,
        message: str = "Unauthorized",
        details: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, "AUTH_ERROR", details, cause)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["code"] = 401
        return result


class MissingAuthHeaderError(AuthError):
    """Request carried no Authorization header."""

    def __init__(self):
        super().__init__(message="Missing authorization header")
        self.code = "MISSING_AUTH_HEADER"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


# ============================================================
# Validation Errors
# ============================================================

class ValidationError(RelayException):
    """Malformed request body or invalid field."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Any = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, "VALIDATION_ERROR", details, cause)
        self.field = field


class InvalidPriceError(ValidationError):
    """store_price missing, non-numeric or not positive."""

    def __init__(self, price_value: Any = None):
        super().__init__(message="Valid store_price is required", field="store_price")
        self.code = "INVALID_PRICE"
        self.price_value = price_value


# ============================================================
# Configuration Errors
# ============================================================

class ConfigurationError(RelayException):
    """Server-side configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message=message, code="CONFIGURATION_ERROR")
        self.config_key = config_key


class MissingAPIKeyError(ConfigurationError):
    """Required API key is missing."""

    def __init__(self, service: str, config_key: Optional[str] = None):
        super().__init__(
            message=f"{service} API key not configured",
            config_key=config_key or f"{service.upper()}_API_KEY",
        )
        self.code = "MISSING_API_KEY"


# ============================================================
# Upstream Errors
# ============================================================

class UpstreamError(RelayException):
    """An outbound call (AI endpoint, image host) failed."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Any = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, "UPSTREAM_ERROR", details, cause)
        self.service = service
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        if self.status_code is not None:
            result["status"] = self.status_code
        return result


class EmptyReplyError(UpstreamError):
    """AI endpoint answered 2xx but carried no reply text."""

    def __init__(self, service: str = "gemini"):
        super().__init__(service=service, message="No response from AI")
        self.code = "EMPTY_AI_REPLY"


class ImageFetchError(UpstreamError):
    """Could not download the image referenced by image_url."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None,
                 cause: Optional[Exception] = None):
        super().__init__(
            service="image",
            message="Failed to fetch image",
            details=reason,
            status_code=status_code,
            cause=cause,
        )
        self.code = "IMAGE_FETCH_ERROR"
        self.url = url


# ============================================================
# AI Reply Errors
# ============================================================

class ReplyError(RelayException):
    """AI reply could not be turned into an analysis result."""

    def __init__(
        self,
        message: str,
        raw_response: str,
        code: str = "REPLY_ERROR",
        details: Any = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, code, details, cause)
        self.raw_response = raw_response

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["raw_response"] = self.raw_response
        return result


class ParseError(ReplyError):
    """No JSON object could be extracted from the AI reply."""

    def __init__(self, raw_response: str, cause: Optional[Exception] = None):
        super().__init__(
            message="Failed to parse AI response",
            raw_response=raw_response,
            code="PARSE_ERROR",
            cause=cause,
        )


class SchemaError(ReplyError):
    """The extracted JSON does not match the expected reply shape."""

    def __init__(self, raw_response: str, fields: List[str], cause: Optional[Exception] = None):
        super().__init__(
            message="AI response did not match expected schema",
            raw_response=raw_response,
            code="SCHEMA_ERROR",
            details={"fields": fields},
            cause=cause,
        )
        self.fields = fields

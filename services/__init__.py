"""
Services Package

Outbound clients, auth, error handling and shared application state.
"""

from .error_handler import setup_error_handlers, CORS_HEADERS
from .exceptions import (
    RelayException,
    AuthError,
    MissingAuthHeaderError,
    ValidationError,
    InvalidPriceError,
    ConfigurationError,
    MissingAPIKeyError,
    UpstreamError,
    EmptyReplyError,
    ImageFetchError,
    ReplyError,
    ParseError,
    SchemaError,
)
from .marketplace_links import (
    get_ebay_search_url,
    get_amazon_search_url,
    probe_url,
)

__all__ = [
    # Error handling
    'setup_error_handlers',
    'CORS_HEADERS',
    'RelayException',
    'AuthError',
    'MissingAuthHeaderError',
    'ValidationError',
    'InvalidPriceError',
    'ConfigurationError',
    'MissingAPIKeyError',
    'UpstreamError',
    'EmptyReplyError',
    'ImageFetchError',
    'ReplyError',
    'ParseError',
    'SchemaError',
    # Marketplace links
    'get_ebay_search_url',
    'get_amazon_search_url',
    'probe_url',
]

"""
Configuration package for the Analyze Product Relay.
"""

from .settings import (
    BASE_DIR,
    BROWSER_USER_AGENT,
    DEFAULT_FEE_PERCENTAGE,
    DEFAULT_SALES_TAX_RATE,
    GEMINI_API_BASE,
    GEMINI_MODEL,
    NormalizerConfig,
    Settings,
    load_settings,
)

__all__ = [
    'BASE_DIR',
    'BROWSER_USER_AGENT',
    'DEFAULT_FEE_PERCENTAGE',
    'DEFAULT_SALES_TAX_RATE',
    'GEMINI_API_BASE',
    'GEMINI_MODEL',
    'NormalizerConfig',
    'Settings',
    'load_settings',
]

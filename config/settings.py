"""
Centralized Configuration Settings for the Analyze Product Relay

All environment-driven values are read once into a Settings instance and
passed explicitly to the services that need them. Nothing below is read
from the environment at request time.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ============================================================
# PATHS
# ============================================================
BASE_DIR = Path(__file__).parent.parent
ENV_PATH = BASE_DIR / ".env"

# ============================================================
# AI ENDPOINT
# ============================================================
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
GEMINI_MODEL = "gemini-3-flash-preview"

# ============================================================
# NORMALIZATION DEFAULTS
# ============================================================
DEFAULT_SALES_TAX_RATE = 8.0     # percent of buy price
DEFAULT_FEE_PERCENTAGE = 15.0    # percent of market price
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"[CONFIG] {name}={value!r} is not a number, using {default}")
        return default


@dataclass
class NormalizerConfig:
    """Optional stages and defaults for the response normalizer"""
    validate_schema: bool = True
    probe_urls: bool = True
    default_sales_tax_rate: float = DEFAULT_SALES_TAX_RATE
    default_fee_percentage: float = DEFAULT_FEE_PERCENTAGE
    probe_timeout: float = 8.0
    user_agent: str = BROWSER_USER_AGENT


@dataclass
class Settings:
    """Runtime configuration for the relay."""

    # Gemini
    gemini_api_key: Optional[str] = None
    gemini_model: str = GEMINI_MODEL
    gemini_api_base: str = GEMINI_API_BASE

    # Supabase auth
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: Optional[str] = None

    # Server
    environment: str = "production"
    host: str = "127.0.0.1"
    port: int = 8000

    # Outbound timeouts (seconds)
    ai_timeout: float = 120.0
    image_timeout: float = 15.0
    auth_timeout: float = 10.0

    normalizer: NormalizerConfig = field(default_factory=NormalizerConfig)

    @property
    def gemini_api_url(self) -> str:
        return f"{self.gemini_api_base.rstrip('/')}/{self.gemini_model}:generateContent"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev")


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """
    Build Settings from the process environment.

    A .env file next to the project root is loaded first when present;
    variables already set in the environment win over the file.
    """
    env_path = env_path or ENV_PATH
    if env_path.exists():
        load_dotenv(env_path)
        logger.info(f"[CONFIG] Loaded .env from {env_path}")
    else:
        logger.info(f"[CONFIG] No .env file found at {env_path}")

    settings = Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        gemini_model=os.getenv("GEMINI_MODEL", GEMINI_MODEL),
        gemini_api_base=os.getenv("GEMINI_API_BASE", GEMINI_API_BASE),
        supabase_url=os.getenv("SUPABASE_URL") or os.getenv("SUPABASE_PROJECT_URL") or "",
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY") or "",
        supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
        environment=os.getenv("ENVIRONMENT", "production"),
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        ai_timeout=_env_float("AI_TIMEOUT", 120.0),
        image_timeout=_env_float("IMAGE_TIMEOUT", 15.0),
        auth_timeout=_env_float("AUTH_TIMEOUT", 10.0),
        normalizer=NormalizerConfig(
            validate_schema=_env_bool("VALIDATE_AI_SCHEMA", True),
            probe_urls=_env_bool("PROBE_MARKETPLACE_URLS", True),
            probe_timeout=_env_float("PROBE_TIMEOUT", 8.0),
            default_sales_tax_rate=_env_float("DEFAULT_SALES_TAX_RATE", DEFAULT_SALES_TAX_RATE),
            default_fee_percentage=_env_float("DEFAULT_FEE_PERCENTAGE", DEFAULT_FEE_PERCENTAGE),
        ),
    )

    logger.info(f"[CONFIG] Gemini API key: {'Set' if settings.gemini_api_key else 'Missing'}")
    logger.info(f"[CONFIG] Supabase URL: {'Set' if settings.supabase_url else 'Missing'}")
    logger.info(f"[CONFIG] Supabase Anon Key: {'Set' if settings.supabase_anon_key else 'Missing'}")
    logger.info(
        f"[CONFIG] Supabase Service Key: "
        f"{'Set' if settings.supabase_service_role_key else 'Not set (using anon key)'}"
    )
    logger.info(
        f"[CONFIG] Schema check: {settings.normalizer.validate_schema} | "
        f"URL probing: {settings.normalizer.probe_urls}"
    )
    return settings

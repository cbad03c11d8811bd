"""
Analyze Product Relay - entry point

Loads settings, builds the FastAPI app and serves it with uvicorn.
"""

import logging

import uvicorn

from config.settings import load_settings
from services.app_factory import create_app
from services.app_state import AppState

# ============================================================
# CONFIGURATION
# ============================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)

settings = load_settings()
app = create_app(AppState(settings=settings))


# ============================================================
# RUN SERVER
# ============================================================
if __name__ == "__main__":
    logger.info("=" * 60)
    logger.info("Analyze Product Relay")
    logger.info(f"Endpoint: http://{settings.host}:{settings.port}/analyze-product")
    logger.info("=" * 60)

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        workers=1,
    )

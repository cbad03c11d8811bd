# Routes package for the Analyze Product Relay
from .analysis import router as analysis_router, ANALYZE_PATH

__all__ = [
    'analysis_router', 'ANALYZE_PATH',
]

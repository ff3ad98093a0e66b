"""
API Routes

Modular route definitions for the Lead Intelligence API.
"""
from lead_intelligence.api.routes.health import router as health_router
from lead_intelligence.api.routes.metrics import router as metrics_router
from lead_intelligence.api.routes.intelligence import router as intelligence_router
from lead_intelligence.api.routes.insights import router as insights_router

__all__ = [
    "health_router",
    "metrics_router",
    "intelligence_router",
    "insights_router",
]

"""
Health and Readiness Endpoints

Liveness (`/health`) never touches dependencies; readiness (`/ready`) checks
the engine and MongoDB so the load balancer only routes to usable workers.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

from lead_intelligence.repositories import db_manager

router = APIRouter(tags=["Health"])

API_VERSION = "1.0.0"


def _not_ready(reason: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "not_ready", "reason": reason})


@router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "lead-intelligence",
        "version": API_VERSION
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """200 once the lifespan built the engine and MongoDB answers a ping, else 503."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None or not engine.is_ready:
        return _not_ready("Engine not initialized")

    if not await db_manager.ping():
        logger.error("Readiness check failed: MongoDB unreachable")
        return _not_ready("MongoDB unreachable")

    return {
        "status": "ready",
        "mongodb": "connected",
        "engine": "initialized"
    }


@router.get("/")
async def root():
    return {
        "service": "Lead Intelligence API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/health",
            "ready": "/ready",
            "metrics": "/metrics",
            "scoring": "/intelligence/scoring (GET, POST)",
            "insights": "/intelligence/insights (GET, PATCH, POST)"
        }
    }

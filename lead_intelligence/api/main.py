"""
FastAPI Application

Main entry point for the Lead Intelligence API.
Handles application lifecycle, error mapping and router mounting.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from lead_intelligence.core.intelligence_engine import IntelligenceEngine
from lead_intelligence.errors import ErrorKind, IntelligenceError
from lead_intelligence.utils.observability import configure_logging
from lead_intelligence.api.routes import (
    health_router,
    metrics_router,
    intelligence_router,
    insights_router,
)

ERROR_STATUS = {
    ErrorKind.BAD_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Configure logging
    - Initialize IntelligenceEngine (connects to MongoDB, creates indexes)

    Shutdown:
    - Disconnect from MongoDB
    """
    configure_logging()
    logger.info("Starting Lead Intelligence API server...")

    engine = IntelligenceEngine()
    await engine.initialize()
    app.state.engine = engine

    logger.info("API server ready")

    yield

    logger.info("Shutting down API server...")
    await engine.shutdown()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Lead Intelligence API",
    description="Lead scoring, insights and predictions for the real-estate CRM",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(IntelligenceError)
async def intelligence_error_handler(request: Request, exc: IntelligenceError):
    status_code = ERROR_STATUS[exc.kind]
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters use the same 400 shape as InvalidRequestError."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    message = f"Invalid {field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None)
    )


# Mount routers
app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(intelligence_router)
app.include_router(insights_router)

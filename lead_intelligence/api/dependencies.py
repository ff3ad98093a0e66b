"""
FastAPI Dependencies

Reusable dependencies for organization scoping and engine access.
"""

from fastapi import Request, HTTPException, status, Header
from typing import Optional
from loguru import logger

from lead_intelligence.core.intelligence_engine import IntelligenceEngine


async def get_org_id(x_org_id: Optional[str] = Header(None)) -> str:
    """
    Resolve the caller's organization.

    Session handling lives in the gateway in front of this service, which
    forwards the resolved organization as the X-Org-Id header.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    if not x_org_id or not x_org_id.strip():
        logger.warning("🚫 Missing X-Org-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return x_org_id.strip()


def get_engine(request: Request) -> IntelligenceEngine:
    """The engine created by the application lifespan."""
    return request.app.state.engine

"""
Intelligence Scoring Endpoints

Compute or fetch lead intelligence profiles for the caller's organization.
"""
from fastapi import APIRouter, Depends, Query
from loguru import logger
from typing import Optional

from lead_intelligence.api.dependencies import get_engine, get_org_id
from lead_intelligence.api.models.requests import ScoringRequest, SubjectPayload
from lead_intelligence.core.intelligence_engine import IntelligenceEngine
from lead_intelligence.errors import AnalysisFailedError, IntelligenceError

router = APIRouter(prefix="/intelligence", tags=["Intelligence"])


@router.post("/scoring")
async def compute_scoring(
    payload: ScoringRequest,
    org_id: str = Depends(get_org_id),
    engine: IntelligenceEngine = Depends(get_engine)
):
    """
    Compute (or reuse) the intelligence profile for a lead or contact.

    A profile analyzed inside the freshness window is returned as stored
    unless `forceRefresh` is set.

    Returns:
        {"intelligence": profile view with insights, predictions and optimization}
    """
    subject = payload.subject()

    try:
        view = await engine.compute_intelligence(org_id, subject, force_refresh=payload.forceRefresh)
    except IntelligenceError:
        raise
    except Exception as e:
        logger.opt(exception=True).error(f"Lead intelligence analysis error: {e}")
        raise AnalysisFailedError("Failed to analyze lead intelligence") from e

    return {"intelligence": view.to_response()}


@router.get("/scoring")
async def get_scoring(
    leadId: Optional[str] = Query(None),
    contactId: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=100),
    org_id: str = Depends(get_org_id),
    engine: IntelligenceEngine = Depends(get_engine)
):
    """
    Fetch stored intelligence without recomputing.

    With leadId/contactId: that subject's profile view (404 if none).
    Without: the top profiles by overall score, with short previews.
    """
    try:
        if leadId or contactId:
            subject = SubjectPayload(leadId=leadId, contactId=contactId).subject()
            view = await engine.get_intelligence(org_id, subject)
            return {"intelligence": view.to_response()}

        views = await engine.top_intelligence(org_id, limit)
        return {"intelligence": [v.to_response() for v in views]}

    except IntelligenceError:
        raise
    except Exception as e:
        logger.opt(exception=True).error(f"Get lead intelligence error: {e}")
        raise AnalysisFailedError("Failed to fetch lead intelligence") from e

"""
Insight Endpoints

List, mark and author insights attached to intelligence profiles.
"""
from fastapi import APIRouter, Depends, Query, status
from loguru import logger
from typing import Optional

from lead_intelligence.api.dependencies import get_engine, get_org_id
from lead_intelligence.api.models.requests import (
    CustomInsightRequest,
    InsightUpdateRequest,
    SubjectPayload,
)
from lead_intelligence.core.intelligence_engine import IntelligenceEngine
from lead_intelligence.errors import AnalysisFailedError, IntelligenceError

router = APIRouter(prefix="/intelligence/insights", tags=["Insights"])


@router.get("")
async def list_insights(
    category: Optional[str] = Query(None),
    impact: Optional[str] = Query(None),
    actionRequired: Optional[bool] = Query(None),
    unreadOnly: bool = Query(False),
    leadId: Optional[str] = Query(None),
    contactId: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    org_id: str = Depends(get_org_id),
    engine: IntelligenceEngine = Depends(get_engine)
):
    """
    Insights ordered by action required, impact, then newest first.

    Returns:
        insights, pagination {total, limit, offset, hasMore} and an
        organization-wide summary
    """
    subject = (
        SubjectPayload(leadId=leadId, contactId=contactId).subject()
        if leadId or contactId else None
    )

    try:
        result = await engine.list_insights(
            org_id,
            category=category,
            impact=impact,
            action_required=actionRequired,
            unread_only=unreadOnly,
            subject=subject,
            limit=limit,
            offset=offset,
        )
    except IntelligenceError:
        raise
    except Exception as e:
        logger.opt(exception=True).error(f"Get insights error: {e}")
        raise AnalysisFailedError("Failed to fetch insights") from e

    result["insights"] = [i.model_dump(mode="json") for i in result["insights"]]
    return result


@router.patch("")
async def update_insights(
    payload: InsightUpdateRequest,
    org_id: str = Depends(get_org_id),
    engine: IntelligenceEngine = Depends(get_engine)
):
    """Mark insights read or dismissed. Content fields never change."""
    insight_ids, action = payload.validated()

    try:
        updated = await engine.mark_insights(org_id, insight_ids, action)
    except IntelligenceError:
        raise
    except Exception as e:
        logger.opt(exception=True).error(f"Update insights error: {e}")
        raise AnalysisFailedError("Failed to update insights") from e

    return {"success": True, "updated": updated}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_insight(
    payload: CustomInsightRequest,
    org_id: str = Depends(get_org_id),
    engine: IntelligenceEngine = Depends(get_engine)
):
    """Attach a custom insight to a subject that already has a profile."""
    subject = payload.subject()
    fields = payload.insight_fields()

    try:
        insight = await engine.create_custom_insight(org_id, subject, **fields)
    except IntelligenceError:
        raise
    except Exception as e:
        logger.opt(exception=True).error(f"Create insight error: {e}")
        raise AnalysisFailedError("Failed to create insight") from e

    return {"insight": insight.model_dump(mode="json")}

"""
Pydantic models for intelligence API request bodies.

Field names follow the CRM front end's camelCase payloads.
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from lead_intelligence.errors import InvalidRequestError, InvalidSubjectError
from lead_intelligence.models.intelligence import InsightCategory, InsightImpact
from lead_intelligence.models.subject import SubjectRef


class SubjectPayload(BaseModel):
    leadId: Optional[str] = Field(None, description="Lead (deal) identifier")
    contactId: Optional[str] = Field(None, description="Contact identifier")

    def subject(self) -> SubjectRef:
        """
        Raises:
            InvalidSubjectError: Neither identifier was supplied
        """
        if not self.leadId and not self.contactId:
            raise InvalidSubjectError("Lead ID or Contact ID required")
        return SubjectRef(lead_id=self.leadId, contact_id=self.contactId)


class ScoringRequest(SubjectPayload):
    forceRefresh: bool = Field(False, description="Recompute even inside the freshness window")


class InsightUpdateRequest(BaseModel):
    insightIds: Optional[List[str]] = None
    action: Optional[str] = Field(None, description="'read' or 'dismiss'")

    def validated(self) -> tuple[List[str], str]:
        if not self.insightIds or self.action not in ("read", "dismiss"):
            raise InvalidRequestError("Insight IDs and valid action (read/dismiss) required")
        return self.insightIds, self.action


class CustomInsightRequest(SubjectPayload):
    type: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category: InsightCategory = InsightCategory.NEUTRAL
    confidence: float = Field(0.5, ge=0, le=1)
    impact: InsightImpact = InsightImpact.MEDIUM
    actionRequired: bool = False
    suggestedActions: List[str] = Field(default_factory=list)
    dataPoints: Dict[str, Any] = Field(default_factory=dict)

    def insight_fields(self) -> Dict[str, Any]:
        if not self.type or not self.title or not self.description:
            raise InvalidRequestError("Type, title, and description are required")
        return {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "confidence": self.confidence,
            "impact": self.impact,
            "action_required": self.actionRequired,
            "suggested_actions": self.suggestedActions,
            "data_points": self.dataPoints,
        }

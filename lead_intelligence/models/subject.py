import datetime as dt
from typing import Optional
from pydantic import BaseModel, Field, model_validator
from lead_intelligence.models.base import MongoBaseModel


class Contact(MongoBaseModel):
    """
    CRM contact as stored by the wider application.
    The email is an org-scoped encrypted blob, decrypted on demand.
    """
    org_id: str
    full_name: Optional[str] = None
    email_enc: Optional[bytes] = None


class LeadStage(BaseModel):
    """Pipeline stage snapshot. `order` grows as the deal progresses."""
    name: str
    order: int = 0


class Lead(MongoBaseModel):
    """A deal in progress, optionally attached to a contact."""
    org_id: str
    contact_id: Optional[str] = None
    title: Optional[str] = None
    property_value: Optional[float] = None
    probability_percent: Optional[float] = Field(None, ge=0, le=100)
    stage: Optional[LeadStage] = None
    expected_close_date: Optional[dt.datetime] = None


class SubjectRef(BaseModel):
    """Identifies the contact/lead pair being scored."""
    lead_id: Optional[str] = None
    contact_id: Optional[str] = None

    @model_validator(mode="after")
    def require_identifier(self) -> "SubjectRef":
        if not self.lead_id and not self.contact_id:
            raise ValueError("Lead ID or Contact ID required")
        return self

    @property
    def key(self) -> str:
        """Lock/log key. Lead wins when both are known, matching the profile's unique index."""
        if self.lead_id:
            return f"lead:{self.lead_id}"
        return f"contact:{self.contact_id}"

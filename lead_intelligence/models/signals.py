"""
Activity signal records read from the CRM's mailbox, task and calendar stores.
"""
import datetime as dt
from enum import StrEnum
from typing import List, Optional
from pydantic import BaseModel, Field
from lead_intelligence.models.base import MongoBaseModel


class MessageDirection(StrEnum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class ThreadMessage(BaseModel):
    sent_at: dt.datetime
    direction: MessageDirection = MessageDirection.INBOUND
    # Plaintext body when the mailbox sync stored one; used only for keyword heuristics
    body: Optional[str] = None


class EmailThread(MongoBaseModel):
    org_id: str
    subject: Optional[str] = None
    participants_enc: Optional[bytes] = None
    messages: List[ThreadMessage] = Field(default_factory=list)
    ai_category: Optional[str] = Field(None, description="Prior AI classification, e.g. 'hot_lead'")

    @property
    def message_count(self) -> int:
        return len(self.messages)

    def chronological_messages(self) -> List[ThreadMessage]:
        return sorted(self.messages, key=lambda m: m.sent_at)


class TaskStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class Task(MongoBaseModel):
    org_id: str
    title: Optional[str] = None
    # Kept as a plain string: statuses beyond pending/completed exist upstream
    status: str = TaskStatus.PENDING
    due_at: Optional[dt.datetime] = None
    linked_contact_id: Optional[str] = None
    linked_lead_id: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_overdue(self, now: dt.datetime) -> bool:
        return not self.is_completed and self.due_at is not None and self.due_at < now


class CalendarEvent(MongoBaseModel):
    org_id: str
    title: Optional[str] = None
    start: dt.datetime
    attendees_enc: Optional[bytes] = None

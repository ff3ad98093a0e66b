"""
Signal Repositories
Query helpers over the CRM's mailbox, task and calendar collections.
"""
import datetime as dt
from typing import List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository
from ..models.signals import CalendarEvent, EmailThread, Task


class EmailThreadRepository(BaseRepository[EmailThread]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "email_threads", EmailThread)

    async def recent_for_org(self, org_id: str, limit: int = 50) -> List[EmailThread]:
        """
        Most recently updated threads of the organization, newest first.
        Participant matching happens after decryption, so it cannot be pushed down here.
        """
        return await self.find_many(
            {"org_id": org_id},
            limit=limit,
            sort=[("updated_at", -1)]
        )


class TaskRepository(BaseRepository[Task]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "tasks", Task)

    async def for_subject(
        self,
        org_id: str,
        contact_id: Optional[str],
        lead_id: Optional[str] = None,
        limit: int = 500
    ) -> List[Task]:
        """
        Tasks linked to the contact or to the lead, newest first.

        Args:
            org_id: Organization scope
            contact_id: Contact the task may be linked to
            lead_id: Lead the task may be linked to
            limit: Safety cap on the result size
        """
        links = []
        if contact_id:
            links.append({"linked_contact_id": contact_id})
        if lead_id:
            links.append({"linked_lead_id": lead_id})
        if not links:
            return []

        return await self.find_many(
            {"org_id": org_id, "$or": links},
            limit=limit,
            sort=[("created_at", -1)]
        )


class CalendarEventRepository(BaseRepository[CalendarEvent]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "calendar_events", CalendarEvent)

    async def since(self, org_id: str, start: dt.datetime, limit: int = 1000) -> List[CalendarEvent]:
        """Events of the organization starting at or after `start`."""
        return await self.find_many(
            {"org_id": org_id, "start": {"$gte": start}},
            limit=limit,
            sort=[("start", -1)]
        )

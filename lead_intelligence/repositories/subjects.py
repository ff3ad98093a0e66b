"""
Subject Repositories
Read access to CRM contacts and leads, always scoped to one organization.
"""
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository, to_object_id
from ..models.subject import Contact, Lead


class ContactRepository(BaseRepository[Contact]):
    """Contacts are owned by the CRM; this subsystem never writes them."""

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "contacts", Contact)

    async def get_for_org(self, org_id: str, contact_id: str) -> Optional[Contact]:
        """
        Retrieve a contact by id within an organization.

        Returns:
            Contact or None when missing or owned by another org
        """
        return await self.find_one({"_id": to_object_id(contact_id), "org_id": org_id})


class LeadRepository(BaseRepository[Lead]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "leads", Lead)

    async def get_for_org(self, org_id: str, lead_id: str) -> Optional[Lead]:
        return await self.find_one({"_id": to_object_id(lead_id), "org_id": org_id})

import datetime as dt
import json
from typing import Dict, List, Optional

import pytest
from cryptography.fernet import Fernet

from lead_intelligence.models.intelligence import IntelligenceProfile, IntelligenceView
from lead_intelligence.models.signals import (
    CalendarEvent,
    EmailThread,
    MessageDirection,
    Task,
    ThreadMessage,
)
from lead_intelligence.models.subject import Contact, Lead, SubjectRef
from lead_intelligence.services.field_decryption import FernetFieldDecryptor
from lead_intelligence.utils.metrics import metrics

ORG_ID = "org_test"
CONTACT_EMAIL = "buyer@example.com"


@pytest.fixture(autouse=True)
def reset_metrics():
    """Metrics are a process-wide singleton."""
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def now() -> dt.datetime:
    return dt.datetime(2025, 6, 2, 15, 0, tzinfo=dt.UTC)


@pytest.fixture
def org_key() -> str:
    return Fernet.generate_key().decode()


@pytest.fixture
def fernet(org_key) -> Fernet:
    return Fernet(org_key.encode())


@pytest.fixture
def decryptor(org_key) -> FernetFieldDecryptor:
    return FernetFieldDecryptor({ORG_ID: org_key})


@pytest.fixture
def make_thread(now, fernet):
    """
    Build an EmailThread with `messages` messages, one hour apart.
    Participants are encrypted with the org key unless `participants_enc` is given.
    """
    def _make(
        messages: int = 1,
        updated_at: Optional[dt.datetime] = None,
        category: Optional[str] = None,
        bodies: Optional[List[str]] = None,
        participants: str = f"Agent <agent@realty.test>, {CONTACT_EMAIL}",
        participants_enc: Optional[bytes] = None,
        start: Optional[dt.datetime] = None,
        gap: dt.timedelta = dt.timedelta(hours=1),
    ) -> EmailThread:
        start = start or now - dt.timedelta(days=1)
        bodies = bodies or []
        thread_messages = [
            ThreadMessage(
                sent_at=start + gap * i,
                direction=MessageDirection.INBOUND if i % 2 else MessageDirection.OUTBOUND,
                body=bodies[i] if i < len(bodies) else None,
            )
            for i in range(messages)
        ]
        return EmailThread(
            org_id=ORG_ID,
            participants_enc=participants_enc or fernet.encrypt(participants.encode()),
            messages=thread_messages,
            ai_category=category,
            updated_at=updated_at or now - dt.timedelta(days=1),
        )

    return _make


@pytest.fixture
def make_task(now):
    def _make(
        status: str = "pending",
        due_at: Optional[dt.datetime] = None,
        contact_id: Optional[str] = "contact_1",
        lead_id: Optional[str] = None,
    ) -> Task:
        return Task(
            org_id=ORG_ID,
            status=status,
            due_at=due_at,
            linked_contact_id=contact_id,
            linked_lead_id=lead_id,
            updated_at=now - dt.timedelta(days=2),
        )

    return _make


@pytest.fixture
def make_event(now, fernet):
    def _make(
        start: Optional[dt.datetime] = None,
        attendees: Optional[List[str]] = None,
        attendees_enc: Optional[bytes] = None,
    ) -> CalendarEvent:
        attendees = attendees if attendees is not None else [CONTACT_EMAIL]
        return CalendarEvent(
            org_id=ORG_ID,
            start=start or now - dt.timedelta(days=3),
            attendees_enc=attendees_enc or fernet.encrypt(json.dumps(attendees).encode()),
            updated_at=now - dt.timedelta(days=3),
        )

    return _make


@pytest.fixture
def contact(now, fernet) -> Contact:
    return Contact(
        _id="contact_1",
        org_id=ORG_ID,
        full_name="Dana Buyer",
        email_enc=fernet.encrypt(CONTACT_EMAIL.upper().encode()),
        updated_at=now - dt.timedelta(days=10),
    )


@pytest.fixture
def lead() -> Lead:
    return Lead(
        _id="lead_1",
        org_id=ORG_ID,
        contact_id="contact_1",
        title="Maple Street listing",
    )


class InMemoryIntelligenceStore:
    """
    Dict-backed stand-in for IntelligenceStore with the same write semantics:
    profile upsert bumps version, insights and predictions are appended.
    """

    def __init__(self):
        self.profiles: Dict[str, IntelligenceProfile] = {}
        self.insights = []
        self.predictions = []
        self.optimizations = {}
        self.save_calls = 0
        self.fail_on_save: Optional[Exception] = None

    def _matches(self, profile: IntelligenceProfile, org_id: str, subject: SubjectRef) -> bool:
        if profile.org_id != org_id:
            return False
        if subject.lead_id:
            return profile.lead_id == subject.lead_id
        return profile.contact_id == subject.contact_id

    def _view(self, profile: IntelligenceProfile, insight_limit=10, prediction_limit=5) -> IntelligenceView:
        insights = [i for i in self.insights if i.lead_intelligence_id == profile.id][::-1]
        predictions = [p for p in self.predictions if p.lead_intelligence_id == profile.id][::-1]
        return IntelligenceView(
            profile=profile,
            insights=insights[:insight_limit],
            predictions=predictions[:prediction_limit],
            optimization=self.optimizations.get(profile.id),
        )

    async def find_view(self, org_id: str, subject: SubjectRef) -> Optional[IntelligenceView]:
        for profile in self.profiles.values():
            if self._matches(profile, org_id, subject):
                return self._view(profile)
        return None

    async def top_views(self, org_id: str, limit: int) -> List[IntelligenceView]:
        ranked = sorted(
            (p for p in self.profiles.values() if p.org_id == org_id),
            key=lambda p: p.overall_score,
            reverse=True,
        )
        return [self._view(p, 3, 3) for p in ranked[:limit]]

    async def save_analysis(
        self,
        org_id,
        subject_key,
        contact_id,
        lead_id,
        analysis,
        insights,
        predictions,
        optimization,
        analyzed_at,
    ) -> IntelligenceView:
        self.save_calls += 1
        if self.fail_on_save is not None:
            raise self.fail_on_save

        key = f"{org_id}:{subject_key}"
        existing = self.profiles.get(key)
        profile = IntelligenceProfile(
            _id=existing.id if existing else f"profile_{len(self.profiles) + 1}",
            org_id=org_id,
            subject_key=subject_key,
            contact_id=contact_id,
            lead_id=lead_id,
            last_analyzed_at=analyzed_at,
            version=(existing.version if existing else 0) + 1,
            **analysis.model_dump(),
        )
        self.profiles[key] = profile

        for item in [*insights, *predictions, optimization]:
            item.lead_intelligence_id = profile.id
        self.insights.extend(insights)
        self.predictions.extend(predictions)
        self.optimizations[profile.id] = optimization

        return self._view(profile)


@pytest.fixture
def store() -> InMemoryIntelligenceStore:
    return InMemoryIntelligenceStore()

"""
Signal Collector
Gathers the email threads, tasks and calendar events that belong to one
subject. Matching is done per call on decrypted identities; nothing here is
persisted.
"""
import datetime as dt
import json
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from lead_intelligence.config import get_settings
from lead_intelligence.models.signals import CalendarEvent, EmailThread, Task
from lead_intelligence.models.subject import Contact, Lead
from lead_intelligence.services.field_decryption import (
    CALENDAR_ATTENDEES,
    CONTACT_EMAIL,
    EMAIL_PARTICIPANTS,
    DecryptedField,
    FieldDecryptor,
    FieldError,
    FieldResult,
    decrypt_field,
)
from lead_intelligence.utils.observability import logger


@dataclass
class CollectedSignals:
    threads: List[EmailThread] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    events: List[CalendarEvent] = field(default_factory=list)
    contact_email_known: bool = False
    decryption_failures: int = 0


def _partition(results: Sequence[Tuple[object, FieldResult]]):
    """
    Split (record, result) pairs into known plaintexts and a failure count.
    Records without a stored blob are unknown but not counted as failures.
    """
    known = [(record, r.value) for record, r in results if isinstance(r, DecryptedField)]
    failures = sum(1 for _, r in results if isinstance(r, FieldError) and not r.is_missing)
    return known, failures


class SignalCollector:
    """
    Collects activity signals for a contact and its optional lead.

    Any decryption failure is recovered locally: an unknown contact email
    empties the thread and event collections, an unreadable record is
    skipped on its own.
    """

    def __init__(
        self,
        thread_repo,
        task_repo,
        event_repo,
        decryptor: FieldDecryptor,
        thread_limit: Optional[int] = None,
        calendar_lookback_days: Optional[int] = None
    ):
        settings = get_settings()
        self.thread_repo = thread_repo
        self.task_repo = task_repo
        self.event_repo = event_repo
        self.decryptor = decryptor
        self.thread_limit = thread_limit or settings.thread_lookback_limit
        self.calendar_lookback = dt.timedelta(
            days=calendar_lookback_days or settings.calendar_lookback_days
        )

    async def collect(
        self,
        org_id: str,
        contact: Contact,
        lead: Optional[Lead],
        now: dt.datetime
    ) -> CollectedSignals:
        tasks = await self.task_repo.for_subject(
            org_id,
            contact_id=contact.id,
            lead_id=lead.id if lead else None
        )

        email_result = await decrypt_field(self.decryptor, org_id, contact.email_enc, CONTACT_EMAIL)
        email = email_result.value.strip().lower() if email_result.ok else ""

        if not email:
            logger.bind(org_id=org_id, contact_id=contact.id).info(
                "Contact email unknown, skipping thread and calendar matching"
            )
            return CollectedSignals(tasks=tasks, contact_email_known=False)

        threads, thread_failures = await self._matching_threads(org_id, email)
        events, event_failures = await self._matching_events(org_id, email, now)

        signals = CollectedSignals(
            threads=threads,
            tasks=tasks,
            events=events,
            contact_email_known=True,
            decryption_failures=thread_failures + event_failures,
        )

        logger.bind(
            org_id=org_id,
            threads=len(threads),
            tasks=len(tasks),
            events=len(events),
            decryption_failures=signals.decryption_failures,
        ).debug(f"Collected signals for contact {contact.id}")
        return signals

    async def _matching_threads(self, org_id: str, email: str) -> Tuple[List[EmailThread], int]:
        candidates = await self.thread_repo.recent_for_org(org_id, limit=self.thread_limit)

        results = [
            (thread, await decrypt_field(self.decryptor, org_id, thread.participants_enc, EMAIL_PARTICIPANTS))
            for thread in candidates
        ]
        known, failures = _partition(results)

        matched = [thread for thread, participants in known if email in participants.lower()]
        return matched, failures

    async def _matching_events(
        self,
        org_id: str,
        email: str,
        now: dt.datetime
    ) -> Tuple[List[CalendarEvent], int]:
        candidates = await self.event_repo.since(org_id, now - self.calendar_lookback)

        results = [
            (event, await self._decrypt_attendees(org_id, event))
            for event in candidates
        ]
        known, failures = _partition(results)

        matched = [
            event for event, attendees in known
            if any(a.strip().lower() == email for a in json.loads(attendees))
        ]
        return matched, failures

    async def _decrypt_attendees(self, org_id: str, event: CalendarEvent) -> FieldResult:
        """Decrypt and validate the attendee list so matching only sees well-formed JSON arrays."""
        result = await decrypt_field(self.decryptor, org_id, event.attendees_enc, CALENDAR_ATTENDEES)
        if not result.ok:
            return result

        try:
            attendees = json.loads(result.value)
        except json.JSONDecodeError as e:
            logger.bind(org_id=org_id, error=str(e)).warning(
                f"Attendee list for event {event.id} is not valid JSON"
            )
            return FieldError(purpose=CALENDAR_ATTENDEES, reason="invalid JSON")

        if not isinstance(attendees, list):
            return FieldError(purpose=CALENDAR_ATTENDEES, reason="not a list")

        strings = [a for a in attendees if isinstance(a, str)]
        return DecryptedField(value=json.dumps(strings))

"""
Freshness Gate
Decides whether a stored profile can be served instead of recomputing.
"""
import datetime as dt
from typing import Optional

from lead_intelligence.config import get_settings
from lead_intelligence.models.intelligence import IntelligenceView
from lead_intelligence.models.subject import SubjectRef
from lead_intelligence.utils.observability import logger


def is_fresh(
    last_analyzed_at: Optional[dt.datetime],
    now: dt.datetime,
    window: dt.timedelta
) -> bool:
    """Pure predicate: `now - last_analyzed_at < window`."""
    if last_analyzed_at is None:
        return False
    return now - last_analyzed_at < window


class FreshnessGate:
    """
    Serves cached profiles inside the freshness window.

    `store` only needs `find_view(org_id, subject)`, see IntelligenceStore.
    """

    def __init__(self, store, window: Optional[dt.timedelta] = None):
        self.store = store
        self.window = window or dt.timedelta(hours=get_settings().freshness_window_hours)

    async def check(
        self,
        org_id: str,
        subject: SubjectRef,
        force_refresh: bool = False,
        now: Optional[dt.datetime] = None
    ) -> Optional[IntelligenceView]:
        """
        Return the cached view if reusable, otherwise None ("recompute required").
        """
        if force_refresh:
            return None

        now = now or dt.datetime.now(dt.UTC)
        view = await self.store.find_view(org_id, subject)

        if view is None or not is_fresh(view.profile.last_analyzed_at, now, self.window):
            return None

        logger.bind(
            org_id=org_id, last_analyzed_at=view.profile.last_analyzed_at.isoformat()
        ).debug(f"Serving cached intelligence for {subject.key}")
        return view

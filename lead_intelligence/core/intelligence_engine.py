"""
Intelligence Engine
Coordinates the scoring pipeline for one subject.

Flow:
    Freshness Gate → subject lock → re-check → Signal Collector →
    Engagement Analyzer → Score Calculator → {Predictor, Insights,
    Optimization} → persist → stored view
"""
import datetime as dt
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from lead_intelligence.config import get_settings
from lead_intelligence.core.content_signals import ContentSignalExtractor
from lead_intelligence.core.engagement import analyze_engagement, analyze_response_patterns
from lead_intelligence.core.freshness import FreshnessGate
from lead_intelligence.core.insights import generate_insights
from lead_intelligence.core.optimization import build_optimization_profile
from lead_intelligence.core.predictor import (
    build_predictions,
    determine_communication_style,
    determine_optimal_contact_time,
    estimate_decision_timeframe,
    predict_next_actions,
    recommend_actions,
)
from lead_intelligence.core.scoring import build_behavior_metrics, calculate_scores
from lead_intelligence.errors import (
    AnalysisFailedError,
    IntelligenceError,
    IntelligenceNotFoundError,
    SubjectNotFoundError,
)
from lead_intelligence.models.intelligence import (
    Insight,
    IntelligenceView,
    LeadAnalysis,
    OptimizationProfile,
    Prediction,
)
from lead_intelligence.models.subject import Contact, Lead, SubjectRef
from lead_intelligence.repositories import (
    CalendarEventRepository,
    ContactRepository,
    EmailThreadRepository,
    IntelligenceStore,
    LeadRepository,
    TaskRepository,
    db_manager,
)
from lead_intelligence.services.field_decryption import FernetFieldDecryptor, FieldDecryptor
from lead_intelligence.services.signal_collector import CollectedSignals, SignalCollector
from lead_intelligence.services.subject_lock import SubjectLock, get_subject_lock
from lead_intelligence.utils.metrics import metrics
from lead_intelligence.utils.observability import log_analysis, log_business_event, logger


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


@dataclass
class AnalysisArtifacts:
    """Everything one recomputation produces, built in memory before any write."""
    analysis: LeadAnalysis
    insights: List[Insight]
    predictions: List[Prediction]
    optimization: OptimizationProfile


class IntelligenceEngine:
    """
    Computes, caches and serves lead intelligence profiles.

    Usage:
        >>> engine = IntelligenceEngine()
        >>> await engine.initialize()
        >>> view = await engine.compute_intelligence("org_1", SubjectRef(lead_id="65f..."))
        >>> view.profile.overall_score
        45
    """

    def __init__(
        self,
        store: Optional[IntelligenceStore] = None,
        contact_repo: Optional[ContactRepository] = None,
        lead_repo: Optional[LeadRepository] = None,
        collector: Optional[SignalCollector] = None,
        lock: Optional[SubjectLock] = None,
        decryptor: Optional[FieldDecryptor] = None,
        extractor: Optional[ContentSignalExtractor] = None,
        clock: Callable[[], dt.datetime] = _utcnow
    ):
        """
        Collaborators left as None are built by initialize() from the live database.
        Tests inject fakes instead and skip initialize().
        """
        settings = get_settings()
        self.store = store
        self.contact_repo = contact_repo
        self.lead_repo = lead_repo
        self.collector = collector
        self.lock = lock
        self.decryptor = decryptor
        self.extractor = extractor or ContentSignalExtractor()
        self.clock = clock
        self.prediction_ttl = dt.timedelta(days=settings.prediction_ttl_days)
        self.gate = FreshnessGate(store) if store is not None else None

    @property
    def is_ready(self) -> bool:
        return all(
            c is not None
            for c in (self.store, self.contact_repo, self.lead_repo, self.collector, self.lock)
        )

    async def initialize(self) -> None:
        """
        Connect to MongoDB, create indexes and build missing collaborators.
        """
        logger.info("Initializing IntelligenceEngine with MongoDB persistence")

        await db_manager.connect()
        await db_manager.create_indexes()
        db = db_manager.database

        self.store = self.store or IntelligenceStore(db)
        self.contact_repo = self.contact_repo or ContactRepository(db)
        self.lead_repo = self.lead_repo or LeadRepository(db)
        self.lock = self.lock or get_subject_lock(db)

        if self.collector is None:
            decryptor = self.decryptor or FernetFieldDecryptor()
            if isinstance(decryptor, FernetFieldDecryptor) and not decryptor.is_configured:
                logger.warning("No ORG_ENCRYPTION_KEYS configured: every contact email will be unknown")
            self.collector = SignalCollector(
                EmailThreadRepository(db),
                TaskRepository(db),
                CalendarEventRepository(db),
                decryptor,
            )

        self.gate = FreshnessGate(self.store)
        logger.info("IntelligenceEngine initialized")

    async def shutdown(self) -> None:
        logger.info("Shutting down IntelligenceEngine")
        await db_manager.disconnect()

    # ============================================
    # COMPUTE
    # ============================================

    async def compute_intelligence(
        self,
        org_id: str,
        subject: SubjectRef,
        force_refresh: bool = False
    ) -> IntelligenceView:
        """
        Return the subject's profile view, recomputing it when stale or forced.

        Raises:
            SubjectNotFoundError: No contact resolves for the subject
            SubjectBusyError: Another recomputation held the lock past the timeout
            AnalysisFailedError: Signal collection or analysis failed (nothing written)
        """
        start = time.perf_counter()

        cached = await self.gate.check(org_id, subject, force_refresh, now=self.clock())
        if cached is not None:
            metrics.analyses_total.inc(outcome="cache_hit")
            log_analysis(org_id, subject.key, "cache_hit", profile_id=cached.profile.id)
            return cached

        contact, lead = await self._resolve_subject(org_id, subject)
        resolved = SubjectRef(lead_id=lead.id if lead else None, contact_id=contact.id)

        async with self.lock.hold(org_id, resolved.key):
            if not force_refresh:
                # A concurrent request may have finished while we waited on the lock
                cached = await self.gate.check(org_id, resolved, now=self.clock())
                if cached is not None:
                    metrics.analyses_total.inc(outcome="cache_hit")
                    log_analysis(org_id, resolved.key, "cache_hit", after_lock=True)
                    return cached

            now = self.clock()
            try:
                signals = await self.collector.collect(org_id, contact, lead, now)
                artifacts = self.build_artifacts(org_id, contact, lead, signals, now)
            except IntelligenceError:
                raise
            except Exception as e:
                metrics.analyses_total.inc(outcome="failed")
                logger.bind(org_id=org_id).opt(exception=True).error(
                    f"Analysis failed for {resolved.key}: {e}"
                )
                raise AnalysisFailedError("Failed to analyze lead intelligence") from e

            view = await self.store.save_analysis(
                org_id=org_id,
                subject_key=resolved.key,
                contact_id=contact.id,
                lead_id=lead.id if lead else None,
                analysis=artifacts.analysis,
                insights=artifacts.insights,
                predictions=artifacts.predictions,
                optimization=artifacts.optimization,
                analyzed_at=now,
            )

        duration = time.perf_counter() - start
        metrics.analyses_total.inc(outcome="recomputed")
        metrics.analysis_duration.observe(duration)
        metrics.predictions_emitted.inc(len(artifacts.predictions))
        for insight in artifacts.insights:
            metrics.insights_emitted.inc(type=insight.type)
            log_business_event("insight_emitted", resolved.key, insight_type=insight.type, org_id=org_id)

        log_analysis(
            org_id,
            resolved.key,
            "recomputed",
            duration_ms=duration * 1000,
            overall_score=view.profile.overall_score,
            version=view.profile.version,
            threads=len(signals.threads),
            tasks=len(signals.tasks),
            events=len(signals.events),
            decryption_failures=signals.decryption_failures,
        )
        return view

    async def _resolve_subject(self, org_id: str, subject: SubjectRef) -> Tuple[Contact, Optional[Lead]]:
        """The lead's contact wins over an explicit contact id."""
        lead = None
        contact_id = subject.contact_id

        if subject.lead_id:
            lead = await self.lead_repo.get_for_org(org_id, subject.lead_id)
            if lead is not None and lead.contact_id:
                contact_id = lead.contact_id

        contact = await self.contact_repo.get_for_org(org_id, contact_id) if contact_id else None
        if contact is None:
            raise SubjectNotFoundError("Contact not found")

        return contact, lead

    def build_artifacts(
        self,
        org_id: str,
        contact: Contact,
        lead: Optional[Lead],
        signals: CollectedSignals,
        now: dt.datetime
    ) -> AnalysisArtifacts:
        """
        Pure assembly of the analysis and its derived records.
        Same signals and `now` always give the same artifacts.
        """
        threads, tasks, events = signals.threads, signals.tasks, signals.events

        engagement = analyze_engagement(threads)
        scores = calculate_scores(threads, tasks, events, lead, engagement, now)

        analysis = LeadAnalysis(
            overall_score=scores.overall,
            conversion_probability=scores.conversion_probability,
            engagement_score=scores.engagement,
            urgency_score=scores.urgency,
            value_score=scores.value,
            response_patterns=analyze_response_patterns(threads),
            behavior_metrics=build_behavior_metrics(threads, tasks, events, contact, engagement, now),
            predicted_actions=predict_next_actions(engagement, tasks, lead, now),
            recommended_actions=recommend_actions(scores, engagement),
            optimal_contact_time=determine_optimal_contact_time(threads),
            communication_style=determine_communication_style(threads),
            decision_timeframe=estimate_decision_timeframe(engagement, lead, now),
            pain_points=self.extractor.pain_points(threads),
            competitor_mentions=self.extractor.competitor_mentions(threads),
            price_signals=self.extractor.price_signals(threads),
        )

        return AnalysisArtifacts(
            analysis=analysis,
            insights=generate_insights(org_id, analysis),
            predictions=build_predictions(org_id, analysis, now, self.prediction_ttl),
            optimization=build_optimization_profile(org_id, analysis, now),
        )

    # ============================================
    # READ
    # ============================================

    async def get_intelligence(self, org_id: str, subject: SubjectRef) -> IntelligenceView:
        """Stored view without recomputation, regardless of freshness."""
        view = await self.store.find_view(org_id, subject)
        if view is None:
            raise IntelligenceNotFoundError("Lead intelligence not found")
        return view

    async def top_intelligence(self, org_id: str, limit: Optional[int] = None) -> List[IntelligenceView]:
        limit = limit or get_settings().top_profiles_default_limit
        return await self.store.top_views(org_id, limit)

    # ============================================
    # INSIGHTS
    # ============================================

    async def list_insights(
        self,
        org_id: str,
        category: Optional[str] = None,
        impact: Optional[str] = None,
        action_required: Optional[bool] = None,
        unread_only: bool = False,
        subject: Optional[SubjectRef] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Dict[str, Any]:
        profile_ids = (
            await self.store.profiles.ids_for_subject(org_id, subject) if subject else None
        )
        query = self.store.insights.build_filter(
            org_id,
            category=category,
            impact=impact,
            action_required=action_required,
            unread_only=unread_only,
            profile_ids=profile_ids,
        )

        insights = await self.store.insights.list_filtered(query, limit=limit, offset=offset)
        total = await self.store.insights.count(query)
        summary = await self.store.insights.summary(org_id)

        return {
            "insights": insights,
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "hasMore": offset + limit < total,
            },
            "summary": summary,
        }

    async def mark_insights(self, org_id: str, insight_ids: Sequence[str], action: str) -> int:
        updated = await self.store.insights.mark(org_id, insight_ids, action)
        logger.bind(org_id=org_id, requested=len(insight_ids)).info(
            f"Marked {updated} insights as {action}"
        )
        return updated

    async def create_custom_insight(
        self,
        org_id: str,
        subject: SubjectRef,
        **fields: Any
    ) -> Insight:
        """
        Attach a manually authored insight to an existing profile.

        Raises:
            IntelligenceNotFoundError: The subject has no profile yet
        """
        profile = await self.store.profiles.find_for_subject(org_id, subject)
        if profile is None:
            raise IntelligenceNotFoundError("Lead intelligence not found")

        insight = Insight(org_id=org_id, lead_intelligence_id=profile.id, **fields)
        created = await self.store.insights.create(insight)

        log_business_event("custom_insight_created", subject.key, insight_type=insight.type, org_id=org_id)
        return created

"""
Intelligence Repository Tests
Query construction (no database) and persistence against a live MongoDB.
Persistence tests are skipped when MONGODB_URI is unreachable.
"""
import datetime as dt
import pytest
from bson import ObjectId
from unittest.mock import AsyncMock, MagicMock

from lead_intelligence.repositories import db_manager
from lead_intelligence.repositories.base import to_object_id
from lead_intelligence.repositories.intelligence import (
    InsightRepository,
    IntelligenceProfileRepository,
    IntelligenceStore,
    PredictionRepository,
)
from lead_intelligence.models.intelligence import (
    Insight,
    InsightCategory,
    InsightImpact,
    LeadAnalysis,
    OptimizationProfile,
    BestContactTimes,
    ContactWindow,
    ContentPreferences,
    CommunicationStyle,
    Prediction,
    PredictionType,
)
from lead_intelligence.models.subject import SubjectRef


TEST_DATABASE = "lead_intelligence_test"
ORG_ID = "org_repo_test"


class TestQueryConstruction:
    """Pure helpers, no database required."""

    def test_subject_filter_prefers_lead(self):
        query = IntelligenceProfileRepository.subject_filter(
            "org", SubjectRef(lead_id="l1", contact_id="c1")
        )
        assert query == {"org_id": "org", "lead_id": "l1"}

    def test_subject_filter_contact_only(self):
        query = IntelligenceProfileRepository.subject_filter("org", SubjectRef(contact_id="c1"))
        assert query == {"org_id": "org", "contact_id": "c1"}

    def test_insight_filter(self):
        query = InsightRepository.build_filter(
            "org",
            category="urgent",
            impact="high",
            action_required=True,
            unread_only=True,
            profile_ids=["p1"],
        )
        assert query == {
            "org_id": "org",
            "category": "urgent",
            "impact": "high",
            "action_required": True,
            "is_read": False,
            "lead_intelligence_id": {"$in": ["p1"]},
        }

    def test_insight_filter_defaults(self):
        assert InsightRepository.build_filter("org") == {"org_id": "org"}

    def test_to_object_id(self):
        oid = ObjectId()
        assert to_object_id(str(oid)) == oid
        assert to_object_id("crm-contact-17") == "crm-contact-17"


class TestRecentArtifacts:
    """Artifacts written by one save share created_at, so _id breaks the tie."""

    @staticmethod
    def _database():
        cursor = MagicMock()
        cursor.sort.return_value = cursor
        cursor.skip.return_value = cursor
        cursor.limit.return_value = cursor
        cursor.to_list = AsyncMock(return_value=[])
        collection = MagicMock()
        collection.find.return_value = cursor
        database = MagicMock()
        database.__getitem__.return_value = collection
        return database, collection, cursor

    @pytest.mark.parametrize("repository_class", [InsightRepository, PredictionRepository])
    async def test_newest_first_with_id_tiebreak(self, repository_class):
        database, collection, cursor = self._database()

        await repository_class(database).recent_for_profile("profile_1", 3)

        collection.find.assert_called_once_with({"lead_intelligence_id": "profile_1"})
        cursor.sort.assert_called_once_with([("created_at", -1), ("_id", -1)])
        cursor.limit.assert_called_once_with(3)


@pytest.fixture
async def database():
    """Connected test database, cleaned before and after each test."""
    await db_manager.connect()
    if not await db_manager.ping():
        await db_manager.disconnect()
        pytest.skip("MongoDB not reachable")

    db = db_manager.client[TEST_DATABASE]
    for name in ("lead_intelligence", "lead_insights", "lead_predictions", "communication_optimizations"):
        await db[name].delete_many({"org_id": ORG_ID})
    await db.lead_intelligence.create_index(
        [("org_id", 1), ("subject_key", 1)], unique=True, name="idx_org_subject_unique"
    )

    yield db

    for name in ("lead_intelligence", "lead_insights", "lead_predictions", "communication_optimizations"):
        await db[name].delete_many({"org_id": ORG_ID})
    await db_manager.disconnect()


def _artifacts(now: dt.datetime):
    insights = [
        Insight(
            org_id=ORG_ID,
            type="engagement_spike",
            category=InsightCategory.POSITIVE,
            title="High Engagement Detected",
            description="This lead is showing exceptional engagement levels",
            confidence=0.9,
            impact=InsightImpact.HIGH,
            action_required=True,
        )
    ]
    predictions = [
        Prediction(
            org_id=ORG_ID,
            prediction_type=PredictionType.CONVERSION,
            prediction="40% likelihood to convert within long_term",
            probability=0.4,
            timeframe="long_term",
            expires_at=now + dt.timedelta(days=30),
        )
    ]
    optimization = OptimizationProfile(
        org_id=ORG_ID,
        best_contact_times=BestContactTimes(
            preferred_time=ContactWindow.MORNING, weekdays=[1, 2, 3, 4, 5], hours=[9, 10, 11]
        ),
        content_preferences=ContentPreferences(style=CommunicationStyle.PROFESSIONAL, formality="formal"),
    )
    return insights, predictions, optimization


class TestIntelligenceStore:

    async def test_save_twice_upserts_profile_and_appends_artifacts(self, database, now):
        store = IntelligenceStore(database)

        for run in range(2):
            insights, predictions, optimization = _artifacts(now)
            view = await store.save_analysis(
                ORG_ID, "contact:c1", "c1", None,
                LeadAnalysis(overall_score=40 + run), insights, predictions, optimization,
                now + dt.timedelta(hours=run),
            )

        assert await database.lead_intelligence.count_documents({"org_id": ORG_ID}) == 1
        assert view.profile.version == 2
        assert view.profile.overall_score == 41
        assert len(view.insights) == 2
        assert len(view.predictions) == 2
        assert await database.communication_optimizations.count_documents({"org_id": ORG_ID}) == 1
        assert view.optimization.lead_intelligence_id == view.profile.id

    async def test_find_view_by_contact(self, database, now):
        store = IntelligenceStore(database)
        insights, predictions, optimization = _artifacts(now)
        await store.save_analysis(
            ORG_ID, "contact:c2", "c2", None, LeadAnalysis(), insights, predictions, optimization, now
        )

        view = await store.find_view(ORG_ID, SubjectRef(contact_id="c2"))

        assert view is not None
        assert view.profile.last_analyzed_at == now
        assert await store.find_view(ORG_ID, SubjectRef(contact_id="nobody")) is None

    async def test_insight_marking_and_summary(self, database, now):
        store = IntelligenceStore(database)
        insights, predictions, optimization = _artifacts(now)
        view = await store.save_analysis(
            ORG_ID, "lead:l1", "c1", "l1", LeadAnalysis(), insights, predictions, optimization, now
        )

        updated = await store.insights.mark(ORG_ID, [view.insights[0].id], "read")
        summary = await store.insights.summary(ORG_ID)

        assert updated == 1
        assert summary["total"] == 1
        assert summary["unread"] == 0
        assert summary["byCategory"] == {"positive": 1}
        assert summary["byImpact"] == {"high": 1}

    async def test_list_orders_by_action_then_impact(self, database, now):
        repo = InsightRepository(database)
        await repo.append([
            Insight(org_id=ORG_ID, type="a", title="low", description="d", impact=InsightImpact.LOW),
            Insight(org_id=ORG_ID, type="b", title="high", description="d", impact=InsightImpact.HIGH),
            Insight(org_id=ORG_ID, type="c", title="action", description="d",
                    impact=InsightImpact.LOW, action_required=True),
        ])

        listed = await repo.list_filtered({"org_id": ORG_ID}, limit=10)

        assert [i.title for i in listed] == ["action", "high", "low"]

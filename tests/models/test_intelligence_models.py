"""
Tests for subject, signal and intelligence models.
"""
import datetime as dt
import pytest
from bson import ObjectId
from pydantic import ValidationError

from lead_intelligence.models.intelligence import (
    Insight,
    IntelligenceProfile,
    IntelligenceView,
    LeadAnalysis,
    OptimizationProfile,
    BestContactTimes,
    ContactWindow,
    ContentPreferences,
    CommunicationStyle,
)
from lead_intelligence.models.signals import Task
from lead_intelligence.models.subject import SubjectRef


class TestSubjectRef:

    def test_requires_an_identifier(self):
        with pytest.raises(ValidationError, match="Lead ID or Contact ID required"):
            SubjectRef()

    def test_key_prefers_lead(self):
        assert SubjectRef(lead_id="l1", contact_id="c1").key == "lead:l1"
        assert SubjectRef(contact_id="c1").key == "contact:c1"


class TestTask:

    def test_overdue_only_when_open_and_past_due(self):
        now = dt.datetime(2025, 6, 2, tzinfo=dt.UTC)
        past = now - dt.timedelta(days=1)

        assert Task(org_id="o", due_at=past).is_overdue(now)
        assert not Task(org_id="o", due_at=past, status="completed").is_overdue(now)
        assert not Task(org_id="o", due_at=now + dt.timedelta(days=1)).is_overdue(now)
        assert not Task(org_id="o").is_overdue(now)

    def test_unknown_status_is_not_completed(self):
        assert not Task(org_id="o", status="cancelled").is_completed


class TestLeadAnalysis:

    def test_scores_snapshot(self):
        analysis = LeadAnalysis(overall_score=45, engagement_score=50, urgency_score=30, value_score=50)

        assert analysis.scores == {
            "overallScore": 45,
            "engagementScore": 50,
            "urgencyScore": 30,
            "valueScore": 50,
        }

    def test_scores_are_bounded(self):
        with pytest.raises(ValidationError):
            LeadAnalysis(overall_score=101)
        with pytest.raises(ValidationError):
            LeadAnalysis(conversion_probability=1.2)

    def test_list_caps(self):
        with pytest.raises(ValidationError):
            LeadAnalysis(pain_points=["a", "b", "c", "d", "e", "f"])
        with pytest.raises(ValidationError):
            LeadAnalysis(predicted_actions=["x"] * 6)


class TestIntelligenceProfile:

    def test_object_id_becomes_string(self):
        oid = ObjectId()

        profile = IntelligenceProfile(_id=oid, org_id="o", subject_key="contact:c", contact_id="c")

        assert profile.id == str(oid)

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            IntelligenceProfile(org_id="o", subject_key="contact:c", contact_id="c", ai_summary="x")


class TestIntelligenceView:

    def test_to_response_nests_artifacts(self):
        profile = IntelligenceProfile(
            _id="p1", org_id="o", subject_key="lead:l1", contact_id="c1", lead_id="l1", overall_score=70
        )
        view = IntelligenceView(
            profile=profile,
            insights=[Insight(org_id="o", type="t", title="T", description="D", lead_intelligence_id="p1")],
            optimization=OptimizationProfile(
                org_id="o",
                lead_intelligence_id="p1",
                best_contact_times=BestContactTimes(
                    preferred_time=ContactWindow.AFTERNOON, weekdays=[1, 2, 3, 4, 5], hours=[13, 14, 15, 16]
                ),
                content_preferences=ContentPreferences(style=CommunicationStyle.DIRECT, formality="casual"),
            ),
        )

        data = view.to_response()

        assert data["id"] == "p1"
        assert data["overall_score"] == 70
        assert data["insights"][0]["lead_intelligence_id"] == "p1"
        assert data["predictions"] == []
        assert data["optimization"]["best_contact_times"]["preferred_time"] == "afternoon"
        assert isinstance(data["last_analyzed_at"], str)

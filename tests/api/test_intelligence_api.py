"""
Tests for the intelligence scoring endpoints.
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from lead_intelligence.api.main import app
from lead_intelligence.errors import (
    IntelligenceNotFoundError,
    SubjectBusyError,
    SubjectNotFoundError,
)
from lead_intelligence.models.intelligence import IntelligenceProfile, IntelligenceView
from lead_intelligence.models.subject import SubjectRef

HEADERS = {"X-Org-Id": "org_test"}


def _view(subject_key: str = "lead:lead_1", score: int = 45) -> IntelligenceView:
    return IntelligenceView(
        profile=IntelligenceProfile(
            _id="profile_1",
            org_id="org_test",
            subject_key=subject_key,
            contact_id="contact_1",
            lead_id="lead_1",
            overall_score=score,
            conversion_probability=0.62,
            version=1,
        )
    )


@pytest.fixture
def engine():
    """Mock engine placed on app state in lieu of the lifespan."""
    engine = MagicMock()
    engine.compute_intelligence = AsyncMock(return_value=_view())
    engine.get_intelligence = AsyncMock(return_value=_view())
    engine.top_intelligence = AsyncMock(return_value=[_view(score=80), _view("contact:c2", 30)])
    app.state.engine = engine
    return engine


@pytest.fixture
def client(engine):
    return TestClient(app)


class TestComputeScoring:
    """POST /intelligence/scoring"""

    def test_requires_org_header(self, client):
        response = client.post("/intelligence/scoring", json={"leadId": "lead_1"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_requires_subject(self, client, engine):
        response = client.post("/intelligence/scoring", json={}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json() == {"error": "Lead ID or Contact ID required"}
        engine.compute_intelligence.assert_not_awaited()

    def test_malformed_body_is_400(self, client, engine):
        response = client.post(
            "/intelligence/scoring",
            json={"leadId": "lead_1", "forceRefresh": "abc"},
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid forceRefresh")
        engine.compute_intelligence.assert_not_awaited()

    def test_returns_profile_view(self, client, engine):
        response = client.post(
            "/intelligence/scoring",
            json={"leadId": "lead_1", "forceRefresh": True},
            headers=HEADERS,
        )

        assert response.status_code == 200
        body = response.json()["intelligence"]
        assert body["overall_score"] == 45
        assert body["subject_key"] == "lead:lead_1"
        assert body["insights"] == []
        assert body["optimization"] is None

        org_id, subject = engine.compute_intelligence.await_args.args
        assert org_id == "org_test"
        assert subject == SubjectRef(lead_id="lead_1")
        assert engine.compute_intelligence.await_args.kwargs == {"force_refresh": True}

    def test_unknown_subject_is_404(self, client, engine):
        engine.compute_intelligence.side_effect = SubjectNotFoundError("Contact not found")

        response = client.post("/intelligence/scoring", json={"contactId": "nope"}, headers=HEADERS)

        assert response.status_code == 404
        assert response.json() == {"error": "Contact not found"}

    def test_busy_subject_is_409(self, client, engine):
        engine.compute_intelligence.side_effect = SubjectBusyError("Subject is being analyzed, retry shortly")

        response = client.post("/intelligence/scoring", json={"leadId": "lead_1"}, headers=HEADERS)

        assert response.status_code == 409

    def test_unexpected_failure_is_generic_500(self, client, engine):
        engine.compute_intelligence.side_effect = RuntimeError("cursor exploded")

        response = client.post("/intelligence/scoring", json={"leadId": "lead_1"}, headers=HEADERS)

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to analyze lead intelligence"}


class TestGetScoring:
    """GET /intelligence/scoring"""

    def test_single_subject(self, client, engine):
        response = client.get("/intelligence/scoring?contactId=contact_1", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["intelligence"]["contact_id"] == "contact_1"
        engine.get_intelligence.assert_awaited_once()

    def test_missing_profile_is_404(self, client, engine):
        engine.get_intelligence.side_effect = IntelligenceNotFoundError("Lead intelligence not found")

        response = client.get("/intelligence/scoring?leadId=lead_9", headers=HEADERS)

        assert response.status_code == 404
        assert response.json() == {"error": "Lead intelligence not found"}

    def test_top_profiles_without_subject(self, client, engine):
        response = client.get("/intelligence/scoring?limit=2", headers=HEADERS)

        assert response.status_code == 200
        scores = [item["overall_score"] for item in response.json()["intelligence"]]
        assert scores == [80, 30]
        engine.top_intelligence.assert_awaited_once_with("org_test", 2)

    def test_limit_is_bounded(self, client):
        response = client.get("/intelligence/scoring?limit=500", headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid limit")

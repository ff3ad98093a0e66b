"""
Intelligence Repositories
Persistence for profiles, insights, predictions and optimization profiles,
plus IntelligenceStore which assembles them into read views.
"""
import datetime as dt
from typing import Any, Dict, List, Optional, Sequence
from motor.motor_asyncio import AsyncIOMotorDatabase

from .base import BaseRepository, to_object_id
from ..config import get_settings
from ..models.intelligence import (
    Insight,
    InsightImpact,
    IntelligenceProfile,
    IntelligenceView,
    LeadAnalysis,
    OptimizationProfile,
    Prediction,
)
from ..models.subject import SubjectRef
from ..utils.observability import logger

# Sort rank so "high" orders before "medium" before "low"
IMPACT_RANK = {
    InsightImpact.HIGH.value: 3,
    InsightImpact.MEDIUM.value: 2,
    InsightImpact.LOW.value: 1,
}

# Artifacts from one save share created_at; _id keeps their insertion order
NEWEST_FIRST = [("created_at", -1), ("_id", -1)]


class IntelligenceProfileRepository(BaseRepository[IntelligenceProfile]):
    """
    One document per (org_id, subject_key), enforced by a unique index.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "lead_intelligence", IntelligenceProfile)

    @staticmethod
    def subject_filter(org_id: str, subject: SubjectRef) -> Dict[str, Any]:
        """Lead id wins when both are given."""
        if subject.lead_id:
            return {"org_id": org_id, "lead_id": subject.lead_id}
        return {"org_id": org_id, "contact_id": subject.contact_id}

    async def find_for_subject(self, org_id: str, subject: SubjectRef) -> Optional[IntelligenceProfile]:
        return await self.find_one(
            self.subject_filter(org_id, subject),
            sort=[("last_analyzed_at", -1)]
        )

    async def ids_for_subject(self, org_id: str, subject: SubjectRef) -> List[str]:
        cursor = self.collection.find(self.subject_filter(org_id, subject), {"_id": 1})
        return [str(doc["_id"]) async for doc in cursor]

    async def upsert_analysis(
        self,
        org_id: str,
        subject_key: str,
        contact_id: str,
        lead_id: Optional[str],
        analysis: LeadAnalysis,
        analyzed_at: dt.datetime
    ) -> IntelligenceProfile:
        """
        Write the analysis onto the subject's profile, creating it on first run.
        Every call bumps `version`.
        """
        fields = analysis.model_dump(mode="python")
        fields.update(
            contact_id=contact_id,
            lead_id=lead_id,
            last_analyzed_at=analyzed_at,
        )

        profile = await self.upsert_one(
            {"org_id": org_id, "subject_key": subject_key},
            fields,
            inc_fields={"version": 1}
        )

        logger.bind(org_id=org_id, subject=subject_key).debug(
            f"Profile {profile.id} stored at version {profile.version}"
        )
        return profile

    async def top_by_score(self, org_id: str, limit: int = 10) -> List[IntelligenceProfile]:
        return await self.find_many(
            {"org_id": org_id},
            limit=limit,
            sort=[("overall_score", -1)]
        )


class InsightRepository(BaseRepository[Insight]):
    """
    Insights are append-only; only `is_read` and `dismissed_at` change afterwards.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "lead_insights", Insight)

    async def append(self, insights: List[Insight]) -> List[Insight]:
        return await self.bulk_create(insights)

    async def recent_for_profile(self, profile_id: str, limit: int = 10) -> List[Insight]:
        return await self.find_many(
            {"lead_intelligence_id": profile_id},
            limit=limit,
            sort=NEWEST_FIRST
        )

    @staticmethod
    def build_filter(
        org_id: str,
        category: Optional[str] = None,
        impact: Optional[str] = None,
        action_required: Optional[bool] = None,
        unread_only: bool = False,
        profile_ids: Optional[Sequence[str]] = None
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"org_id": org_id}
        if category:
            query["category"] = category
        if impact:
            query["impact"] = impact
        if action_required is not None:
            query["action_required"] = action_required
        if unread_only:
            query["is_read"] = False
        if profile_ids is not None:
            query["lead_intelligence_id"] = {"$in": list(profile_ids)}
        return query

    async def list_filtered(
        self,
        query: Dict[str, Any],
        limit: int = 20,
        offset: int = 0
    ) -> List[Insight]:
        """
        Matching insights ordered by action_required, impact, then newest first.
        """
        pipeline = [
            {"$match": query},
            {"$addFields": {
                "_impact_rank": {
                    "$switch": {
                        "branches": [
                            {"case": {"$eq": ["$impact", name]}, "then": rank}
                            for name, rank in IMPACT_RANK.items()
                        ],
                        "default": 0,
                    }
                }
            }},
            {"$sort": {"action_required": -1, "_impact_rank": -1, "created_at": -1, "_id": -1}},
            {"$skip": offset},
            {"$limit": limit},
        ]
        docs = await self.collection.aggregate(pipeline).to_list(length=limit)
        return [self._to_model(doc) for doc in docs]

    async def summary(self, org_id: str) -> Dict[str, Any]:
        """Totals across the whole organization, independent of list filters."""
        total = await self.count({"org_id": org_id})
        unread = await self.count({"org_id": org_id, "is_read": False})
        action_required = await self.count(
            {"org_id": org_id, "is_read": False, "action_required": True}
        )

        by_category = await self._group_counts(org_id, "$category")
        by_impact = await self._group_counts(org_id, "$impact")

        return {
            "total": total,
            "unread": unread,
            "actionRequired": action_required,
            "byCategory": by_category,
            "byImpact": by_impact,
        }

    async def _group_counts(self, org_id: str, field: str) -> Dict[str, int]:
        pipeline = [
            {"$match": {"org_id": org_id}},
            {"$group": {"_id": field, "count": {"$sum": 1}}},
        ]
        docs = await self.collection.aggregate(pipeline).to_list(length=None)
        return {str(doc["_id"]): doc["count"] for doc in docs}

    async def mark(self, org_id: str, insight_ids: Sequence[str], action: str) -> int:
        """
        Mark insights read or dismissed.

        Args:
            org_id: Organization scope; ids of other orgs are ignored
            insight_ids: Insight ids
            action: "read" or "dismiss"

        Returns:
            Number of insights updated
        """
        if action == "read":
            update = {"is_read": True}
        elif action == "dismiss":
            update = {"dismissed_at": dt.datetime.now(dt.UTC)}
        else:
            raise ValueError(f"Unknown insight action: {action}")

        update["updated_at"] = dt.datetime.now(dt.UTC)
        result = await self.collection.update_many(
            {"_id": {"$in": [to_object_id(i) for i in insight_ids]}, "org_id": org_id},
            {"$set": update}
        )
        return result.modified_count


class PredictionRepository(BaseRepository[Prediction]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "lead_predictions", Prediction)

    async def append(self, predictions: List[Prediction]) -> List[Prediction]:
        return await self.bulk_create(predictions)

    async def recent_for_profile(self, profile_id: str, limit: int = 5) -> List[Prediction]:
        return await self.find_many(
            {"lead_intelligence_id": profile_id},
            limit=limit,
            sort=NEWEST_FIRST
        )


class OptimizationRepository(BaseRepository[OptimizationProfile]):

    def __init__(self, database: AsyncIOMotorDatabase):
        super().__init__(database, "communication_optimizations", OptimizationProfile)

    async def upsert_for_profile(self, optimization: OptimizationProfile) -> OptimizationProfile:
        """Exactly one optimization document per profile."""
        fields = optimization.model_dump(
            mode="python",
            exclude={"id", "created_at", "updated_at", "lead_intelligence_id"}
        )
        return await self.upsert_one(
            {"lead_intelligence_id": optimization.lead_intelligence_id},
            fields
        )

    async def for_profile(self, profile_id: str) -> Optional[OptimizationProfile]:
        return await self.find_one({"lead_intelligence_id": profile_id})


class IntelligenceStore:
    """
    Facade over the four intelligence collections.

    Reads return IntelligenceView objects; `save_analysis` writes one
    recomputation's artifacts in order: profile, insights, predictions,
    optimization.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        settings = get_settings()
        self.profiles = IntelligenceProfileRepository(database)
        self.insights = InsightRepository(database)
        self.predictions = PredictionRepository(database)
        self.optimizations = OptimizationRepository(database)
        self.insight_limit = settings.profile_insight_limit
        self.prediction_limit = settings.profile_prediction_limit
        self.preview_limit = settings.preview_item_limit

    async def view_for_profile(
        self,
        profile: IntelligenceProfile,
        insight_limit: Optional[int] = None,
        prediction_limit: Optional[int] = None,
        with_optimization: bool = True
    ) -> IntelligenceView:
        insights = await self.insights.recent_for_profile(
            profile.id, insight_limit or self.insight_limit
        )
        predictions = await self.predictions.recent_for_profile(
            profile.id, prediction_limit or self.prediction_limit
        )
        optimization = await self.optimizations.for_profile(profile.id) if with_optimization else None

        return IntelligenceView(
            profile=profile,
            insights=insights,
            predictions=predictions,
            optimization=optimization,
        )

    async def find_view(self, org_id: str, subject: SubjectRef) -> Optional[IntelligenceView]:
        profile = await self.profiles.find_for_subject(org_id, subject)
        if profile is None:
            return None
        return await self.view_for_profile(profile)

    async def top_views(self, org_id: str, limit: int) -> List[IntelligenceView]:
        """Highest overall scores first, with short insight/prediction previews."""
        profiles = await self.profiles.top_by_score(org_id, limit)
        return [
            await self.view_for_profile(
                profile,
                insight_limit=self.preview_limit,
                prediction_limit=self.preview_limit,
                with_optimization=False
            )
            for profile in profiles
        ]

    async def save_analysis(
        self,
        org_id: str,
        subject_key: str,
        contact_id: str,
        lead_id: Optional[str],
        analysis: LeadAnalysis,
        insights: List[Insight],
        predictions: List[Prediction],
        optimization: OptimizationProfile,
        analyzed_at: dt.datetime
    ) -> IntelligenceView:
        """
        Persist one recomputation. Any write failure propagates to the caller.
        """
        profile = await self.profiles.upsert_analysis(
            org_id, subject_key, contact_id, lead_id, analysis, analyzed_at
        )

        for item in [*insights, *predictions, optimization]:
            item.lead_intelligence_id = profile.id

        await self.insights.append(insights)
        await self.predictions.append(predictions)
        await self.optimizations.upsert_for_profile(optimization)

        return await self.view_for_profile(profile)

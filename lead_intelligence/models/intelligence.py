# lead_intelligence/models/intelligence.py
import datetime as dt
from enum import StrEnum
from typing import Annotated, Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from lead_intelligence.models.base import MongoBaseModel, utcnow

Probability = Annotated[float, Field(ge=0, le=1.0)]
Score = Annotated[int, Field(ge=0, le=100)]


class EngagementTrend(StrEnum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    NONE = "none"


class ContactWindow(StrEnum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class CommunicationStyle(StrEnum):
    RELATIONSHIP_FOCUSED = "relationship-focused"
    DIRECT = "direct"
    PROFESSIONAL = "professional"


class DecisionTimeframe(StrEnum):
    IMMEDIATE = "immediate"
    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"


class InsightCategory(StrEnum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    URGENT = "urgent"


class InsightImpact(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PredictionType(StrEnum):
    CONVERSION = "conversion"
    NEXT_ACTION = "next_action"
    TIMELINE = "timeline"


# ============================================
# ANALYSIS RECORDS
# ============================================

class EngagementAnalysis(BaseModel):
    response_rate: Probability = 0.0
    average_response_time_ms: float = Field(0.0, ge=0)
    trend: EngagementTrend = EngagementTrend.NONE


class ResponsePatterns(BaseModel):
    average_thread_length: float = 0.0
    initiated_threads: int = 0   # single-message threads
    responded_threads: int = 0   # multi-message threads


class BehaviorMetrics(BaseModel):
    email_response_rate: Probability = 0.0
    average_response_time_ms: float = 0.0
    engagement_trend: EngagementTrend = EngagementTrend.NONE
    task_completion: Probability = 0.0
    meetings_attended: int = 0
    last_activity: Optional[dt.datetime] = None


class ScoreBreakdown(BaseModel):
    engagement: Score
    urgency: Score
    value: Score
    conversion_probability: Probability
    overall: Score


class CompetitorMention(BaseModel):
    name: str
    mentions: int = Field(ge=1)
    sentiment: str = "neutral"


class PriceRange(BaseModel):
    min: float
    max: float


class PriceSignals(BaseModel):
    price_range: PriceRange = Field(default_factory=lambda: PriceRange(min=250_000, max=500_000))
    sensitivity: Literal["high", "medium", "low"] = "low"
    budget_concerns: bool = False
    negotiation_signals: bool = False


class LeadAnalysis(BaseModel):
    """Everything the pipeline derives for one subject; written onto the profile verbatim."""
    overall_score: Score = 0
    conversion_probability: Probability = 0.0
    engagement_score: Score = 0
    urgency_score: Score = 0
    value_score: Score = 0

    response_patterns: ResponsePatterns = Field(default_factory=ResponsePatterns)
    behavior_metrics: BehaviorMetrics = Field(default_factory=BehaviorMetrics)
    predicted_actions: List[str] = Field(default_factory=list, max_length=5)
    recommended_actions: List[str] = Field(default_factory=list)
    optimal_contact_time: ContactWindow = ContactWindow.MORNING
    communication_style: CommunicationStyle = CommunicationStyle.PROFESSIONAL
    decision_timeframe: DecisionTimeframe = DecisionTimeframe.LONG_TERM

    pain_points: List[str] = Field(default_factory=list, max_length=5)
    competitor_mentions: List[CompetitorMention] = Field(default_factory=list)
    price_signals: PriceSignals = Field(default_factory=PriceSignals)

    @property
    def scores(self) -> Dict[str, int]:
        """Snapshot stored on insights for later audit."""
        return {
            "overallScore": self.overall_score,
            "engagementScore": self.engagement_score,
            "urgencyScore": self.urgency_score,
            "valueScore": self.value_score,
        }


# ============================================
# PERSISTED RECORDS
# ============================================

class IntelligenceProfile(MongoBaseModel, LeadAnalysis):
    """
    One live profile per (org, subject).
    Upserted on every recomputation, never deleted here.
    """
    org_id: str
    subject_key: str = Field(..., description="'lead:<id>' or 'contact:<id>'; unique per org")
    lead_id: Optional[str] = None
    contact_id: str
    last_analyzed_at: dt.datetime = Field(default_factory=utcnow)
    version: int = 0


class Insight(MongoBaseModel):
    """Threshold-triggered explanation. Content is append-only; only read state changes."""
    org_id: str
    lead_intelligence_id: Optional[str] = None
    type: str
    category: InsightCategory = InsightCategory.NEUTRAL
    title: str
    description: str
    confidence: Probability = 0.5
    impact: InsightImpact = InsightImpact.MEDIUM
    action_required: bool = False
    suggested_actions: List[str] = Field(default_factory=list)
    data_points: Dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    dismissed_at: Optional[dt.datetime] = None


class Prediction(MongoBaseModel):
    org_id: str
    lead_intelligence_id: Optional[str] = None
    prediction_type: PredictionType
    prediction: str
    probability: Probability
    timeframe: str
    factors: Dict[str, Any] = Field(default_factory=dict)
    expires_at: dt.datetime


class ChannelPreference(BaseModel):
    email: Probability = 0.8
    phone: Probability = 0.6
    text: Probability = 0.4


class BestContactTimes(BaseModel):
    preferred_time: ContactWindow
    weekdays: List[int]
    hours: List[int]


class ContentPreferences(BaseModel):
    style: CommunicationStyle
    length: str = "medium"
    formality: Literal["formal", "casual"]


class OptimizationProfile(MongoBaseModel):
    """Exactly one per IntelligenceProfile; upserted on lead_intelligence_id."""
    org_id: str
    lead_intelligence_id: Optional[str] = None
    channel_preference: ChannelPreference = Field(default_factory=ChannelPreference)
    best_contact_times: BestContactTimes
    response_patterns: ResponsePatterns = Field(default_factory=ResponsePatterns)
    content_preferences: ContentPreferences
    engagement_triggers: List[str] = Field(default_factory=list)
    avoidance_patterns: List[str] = Field(default_factory=list)
    last_optimized_at: dt.datetime = Field(default_factory=utcnow)


# ============================================
# READ SHAPES
# ============================================

class IntelligenceView(BaseModel):
    """A profile with its most recent artifacts, as returned to callers."""
    profile: IntelligenceProfile
    insights: List[Insight] = Field(default_factory=list)
    predictions: List[Prediction] = Field(default_factory=list)
    optimization: Optional[OptimizationProfile] = None

    def to_response(self) -> Dict[str, Any]:
        data = self.profile.model_dump(mode="json")
        data["insights"] = [i.model_dump(mode="json") for i in self.insights]
        data["predictions"] = [p.model_dump(mode="json") for p in self.predictions]
        data["optimization"] = (
            self.optimization.model_dump(mode="json") if self.optimization else None
        )
        return data

"""
Predictor & Recommender

Fixed-order rule lists over the computed scores plus the three forward-looking
prediction records written on every recomputation.
"""
import datetime as dt
from typing import List, Optional, Sequence

from lead_intelligence.models.intelligence import (
    CommunicationStyle,
    ContactWindow,
    DecisionTimeframe,
    EngagementAnalysis,
    EngagementTrend,
    LeadAnalysis,
    Prediction,
    PredictionType,
    ScoreBreakdown,
)
from lead_intelligence.models.signals import EmailThread, Task, TaskStatus
from lead_intelligence.models.subject import Lead
from lead_intelligence.core.scoring import round_half_up

MAX_PREDICTED_ACTIONS = 5
IMMEDIATE_RESPONSE_MS = 2 * 60 * 60 * 1000

DEFAULT_NEXT_ACTION = "Follow up via email"

TIMELINE_TEXT = {
    DecisionTimeframe.IMMEDIATE: "1-3 days",
    DecisionTimeframe.SHORT_TERM: "1-4 weeks",
}


def predict_next_actions(
    analysis: EngagementAnalysis,
    tasks: Sequence[Task],
    lead: Optional[Lead],
    now: dt.datetime
) -> List[str]:
    actions = []

    if analysis.trend == EngagementTrend.INCREASING:
        actions.append("Schedule follow-up call")
        actions.append("Send property information")

    if any(t.status == TaskStatus.PENDING and t.is_overdue(now) for t in tasks):
        actions.append("Complete overdue tasks")

    if lead is not None and (lead.probability_percent or 0) > 60:
        actions.append("Prepare contract documents")
        actions.append("Schedule property showing")

    return actions[:MAX_PREDICTED_ACTIONS]


def recommend_actions(scores: ScoreBreakdown, analysis: EngagementAnalysis) -> List[str]:
    recommendations = []

    if scores.engagement > 70 and scores.urgency > 60:
        recommendations.append("Strike while iron is hot - schedule immediate follow-up")

    if analysis.response_rate < 0.3:
        recommendations.append("Try different communication channel (phone/text)")

    if scores.value > 80 and scores.engagement < 50:
        recommendations.append("High-value lead needs more attention - personalize outreach")

    if scores.urgency > 80:
        recommendations.append("Time-sensitive opportunity - respond within 2 hours")

    return recommendations


def determine_communication_style(threads: Sequence[EmailThread]) -> CommunicationStyle:
    total_messages = sum(t.message_count for t in threads)

    if total_messages > 20:
        return CommunicationStyle.RELATIONSHIP_FOCUSED
    if any(t.message_count == 1 for t in threads):
        return CommunicationStyle.DIRECT
    return CommunicationStyle.PROFESSIONAL


def determine_optimal_contact_time(threads: Sequence[EmailThread]) -> ContactWindow:
    """Hour-of-day histogram (UTC). Ties resolve morning, then afternoon, then evening."""
    hours = [m.sent_at.astimezone(dt.UTC).hour for t in threads for m in t.messages]

    morning = sum(1 for h in hours if 8 <= h < 12)
    afternoon = sum(1 for h in hours if 12 <= h < 17)
    evening = sum(1 for h in hours if 17 <= h < 21)

    if morning >= afternoon and morning >= evening:
        return ContactWindow.MORNING
    if afternoon >= evening:
        return ContactWindow.AFTERNOON
    return ContactWindow.EVENING


def estimate_decision_timeframe(
    analysis: EngagementAnalysis,
    lead: Optional[Lead],
    now: dt.datetime
) -> DecisionTimeframe:
    # A subject with no replies has 0 ms average latency and lands here too
    if analysis.average_response_time_ms < IMMEDIATE_RESPONSE_MS:
        return DecisionTimeframe.IMMEDIATE

    if lead is not None and lead.expected_close_date is not None:
        days_to_close = (lead.expected_close_date - now).total_seconds() / 86400
        if days_to_close <= 30:
            return DecisionTimeframe.SHORT_TERM
        if days_to_close <= 90:
            return DecisionTimeframe.MEDIUM_TERM

    return DecisionTimeframe.LONG_TERM


def build_predictions(
    org_id: str,
    analysis: LeadAnalysis,
    now: dt.datetime,
    ttl: dt.timedelta
) -> List[Prediction]:
    """Always three records: conversion, next action, decision timeline."""
    expires_at = now + ttl
    percent = round_half_up(analysis.conversion_probability * 100)
    timeframe = analysis.decision_timeframe

    return [
        Prediction(
            org_id=org_id,
            prediction_type=PredictionType.CONVERSION,
            prediction=f"{percent}% likelihood to convert within {timeframe.value}",
            probability=analysis.conversion_probability,
            timeframe=timeframe.value,
            factors={
                "engagement": analysis.engagement_score,
                "urgency": analysis.urgency_score,
                "value": analysis.value_score,
            },
            expires_at=expires_at,
        ),
        Prediction(
            org_id=org_id,
            prediction_type=PredictionType.NEXT_ACTION,
            prediction=analysis.predicted_actions[0] if analysis.predicted_actions else DEFAULT_NEXT_ACTION,
            probability=0.75,
            timeframe="next_7_days",
            factors=analysis.behavior_metrics.model_dump(mode="json"),
            expires_at=expires_at,
        ),
        Prediction(
            org_id=org_id,
            prediction_type=PredictionType.TIMELINE,
            prediction=f"Expected decision within {TIMELINE_TEXT.get(timeframe, '1-6 months')}",
            probability=0.6,
            timeframe=timeframe.value,
            factors=analysis.response_patterns.model_dump(mode="json"),
            expires_at=expires_at,
        ),
    ]

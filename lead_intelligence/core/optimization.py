"""
Optimization Profile Builder
Channel, timing and content-style preferences derived from an analysis.
"""
import datetime as dt

from lead_intelligence.models.intelligence import (
    BestContactTimes,
    ChannelPreference,
    CommunicationStyle,
    ContactWindow,
    ContentPreferences,
    LeadAnalysis,
    OptimizationProfile,
)

WEEKDAYS = [1, 2, 3, 4, 5]

CONTACT_HOURS = {
    ContactWindow.MORNING: [9, 10, 11],
    ContactWindow.AFTERNOON: [13, 14, 15, 16],
    ContactWindow.EVENING: [17, 18, 19],
}


def build_optimization_profile(
    org_id: str,
    analysis: LeadAnalysis,
    now: dt.datetime
) -> OptimizationProfile:
    # Channel weights are fixed defaults until channel usage is tracked per contact
    formality = "formal" if analysis.communication_style == CommunicationStyle.PROFESSIONAL else "casual"

    return OptimizationProfile(
        org_id=org_id,
        channel_preference=ChannelPreference(),
        best_contact_times=BestContactTimes(
            preferred_time=analysis.optimal_contact_time,
            weekdays=list(WEEKDAYS),
            hours=list(CONTACT_HOURS[analysis.optimal_contact_time]),
        ),
        response_patterns=analysis.response_patterns,
        content_preferences=ContentPreferences(
            style=analysis.communication_style,
            length="medium",
            formality=formality,
        ),
        engagement_triggers=list(analysis.recommended_actions),
        avoidance_patterns=[],
        last_optimized_at=now,
    )

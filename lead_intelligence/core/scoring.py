"""
Score Calculator

Capped-additive scoring: every factor contributes a bounded number of points
so no single high-volume signal can dominate a sub-score.

    engagement = email (≤40) + completed tasks (≤30) + calendar events (≤30)
    urgency    = recent threads (≤30) + overdue tasks (≤40) + urgent categories (≤30)
    value      = 50 + property value (≤30) + deal probability (≤20) + value categories (≤20)

All functions are pure; `now` is always passed in.
"""
import datetime as dt
import math
from typing import Optional, Sequence

from lead_intelligence.models.intelligence import (
    BehaviorMetrics,
    EngagementAnalysis,
    ScoreBreakdown,
)
from lead_intelligence.models.signals import CalendarEvent, EmailThread, Task
from lead_intelligence.models.subject import Contact, Lead

URGENT_CATEGORIES = frozenset({"hot_lead", "showing_request", "contract"})
VALUE_CATEGORIES = frozenset({"seller_lead", "buyer_lead", "price_inquiry"})

RECENT_THREAD_WINDOW = dt.timedelta(days=7)

# Overall score weights
ENGAGEMENT_WEIGHT = 0.30
URGENCY_WEIGHT = 0.25
VALUE_WEIGHT = 0.25
CONVERSION_WEIGHT = 0.20


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


def round_half_up(value: float) -> int:
    """Half-up rounding (18.5 -> 19); Python's round() would give 18."""
    return int(math.floor(value + 0.5))


def _count_in_categories(threads: Sequence[EmailThread], categories: frozenset) -> int:
    return sum(1 for t in threads if t.ai_category in categories)


def engagement_score(
    threads: Sequence[EmailThread],
    tasks: Sequence[Task],
    events: Sequence[CalendarEvent]
) -> int:
    multi_message = sum(1 for t in threads if t.message_count > 1)
    email_points = min(min(len(threads) * 2, 40) + multi_message * 3, 40)

    completed = sum(1 for t in tasks if t.is_completed)
    task_points = min(completed * 6, 30)

    event_points = min(len(events) * 4, 30)

    return int(clamp(email_points + task_points + event_points, 0, 100))


def urgency_score(
    threads: Sequence[EmailThread],
    tasks: Sequence[Task],
    now: dt.datetime
) -> int:
    recent = sum(1 for t in threads if t.updated_at > now - RECENT_THREAD_WINDOW)
    overdue = sum(1 for t in tasks if t.is_overdue(now))
    urgent = _count_in_categories(threads, URGENT_CATEGORIES)

    points = min(recent * 10, 30) + min(overdue * 15, 40) + min(urgent * 20, 30)
    return int(clamp(points, 0, 100))


def value_score(lead: Optional[Lead], threads: Sequence[EmailThread]) -> int:
    points = 50

    if lead is not None:
        property_value = lead.property_value or 0
        if property_value > 500_000:
            points += 30
        elif property_value > 250_000:
            points += 20

        probability = lead.probability_percent or 0
        if probability > 70:
            points += 20
        elif probability > 40:
            points += 10

    points += min(_count_in_categories(threads, VALUE_CATEGORIES) * 10, 20)
    return int(clamp(points, 0, 100))


def conversion_probability(
    engagement: int,
    urgency: int,
    value: int,
    analysis: EngagementAnalysis,
    lead: Optional[Lead]
) -> float:
    probability = 0.3
    probability += (engagement / 100) * 0.25
    probability += (urgency / 100) * 0.25
    probability += (value / 100) * 0.2

    if analysis.response_rate > 0.7:
        probability += 0.1
    elif analysis.response_rate > 0.3:
        probability += 0.05

    if lead is not None and lead.stage is not None:
        if lead.stage.order > 3:
            probability += 0.15
        elif lead.stage.order > 1:
            probability += 0.1

    return clamp(probability, 0.0, 1.0)


def overall_score(engagement: int, urgency: int, value: int, probability: float) -> int:
    weighted = (
        engagement * ENGAGEMENT_WEIGHT
        + urgency * URGENCY_WEIGHT
        + value * VALUE_WEIGHT
        + probability * 100 * CONVERSION_WEIGHT
    )
    return int(clamp(round_half_up(weighted), 0, 100))


def calculate_scores(
    threads: Sequence[EmailThread],
    tasks: Sequence[Task],
    events: Sequence[CalendarEvent],
    lead: Optional[Lead],
    analysis: EngagementAnalysis,
    now: dt.datetime
) -> ScoreBreakdown:
    engagement = engagement_score(threads, tasks, events)
    urgency = urgency_score(threads, tasks, now)
    value = value_score(lead, threads)
    probability = conversion_probability(engagement, urgency, value, analysis, lead)

    return ScoreBreakdown(
        engagement=engagement,
        urgency=urgency,
        value=value,
        conversion_probability=probability,
        overall=overall_score(engagement, urgency, value, probability),
    )


def build_behavior_metrics(
    threads: Sequence[EmailThread],
    tasks: Sequence[Task],
    events: Sequence[CalendarEvent],
    contact: Contact,
    analysis: EngagementAnalysis,
    now: dt.datetime
) -> BehaviorMetrics:
    completed = sum(1 for t in tasks if t.is_completed)
    activity_times = [t.updated_at for t in threads]
    activity_times += [t.updated_at for t in tasks]
    activity_times += [e.updated_at for e in events]
    activity_times.append(contact.updated_at)

    return BehaviorMetrics(
        email_response_rate=analysis.response_rate,
        average_response_time_ms=analysis.average_response_time_ms,
        engagement_trend=analysis.trend,
        task_completion=completed / len(tasks) if tasks else 0.0,
        meetings_attended=sum(1 for e in events if e.start < now),
        last_activity=max(activity_times),
    )

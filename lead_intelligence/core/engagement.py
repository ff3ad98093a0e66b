"""
Engagement Analyzer
Response rate, first-reply latency and volume trend over a subject's threads.
"""
import math
from typing import List, Sequence

from lead_intelligence.models.intelligence import (
    EngagementAnalysis,
    EngagementTrend,
    ResponsePatterns,
)
from lead_intelligence.models.signals import EmailThread

TREND_RISE_FACTOR = 1.2
TREND_FALL_FACTOR = 0.8


def _mean_thread_length(threads: Sequence[EmailThread]) -> float:
    if not threads:
        return 0.0
    return sum(t.message_count for t in threads) / len(threads)


def first_reply_latencies_ms(threads: Sequence[EmailThread]) -> List[float]:
    """Gap between the first two messages of each replied thread, positive gaps only."""
    latencies = []
    for thread in threads:
        if thread.message_count < 2:
            continue
        first, second = thread.chronological_messages()[:2]
        gap_ms = (second.sent_at - first.sent_at).total_seconds() * 1000
        if gap_ms > 0:
            latencies.append(gap_ms)
    return latencies


def classify_trend(threads: Sequence[EmailThread]) -> EngagementTrend:
    """
    Compare mean thread length of the recent half against the older half.

    `threads` must be ordered most recent first; the recent half gets the
    extra thread when the count is odd. Both comparisons are strict.
    """
    if not threads:
        return EngagementTrend.NONE

    split = math.ceil(len(threads) / 2)
    recent = _mean_thread_length(threads[:split])
    older = _mean_thread_length(threads[split:])

    if recent > older * TREND_RISE_FACTOR:
        return EngagementTrend.INCREASING
    if recent < older * TREND_FALL_FACTOR:
        return EngagementTrend.DECREASING
    return EngagementTrend.STABLE


def analyze_engagement(threads: Sequence[EmailThread]) -> EngagementAnalysis:
    if not threads:
        return EngagementAnalysis()

    responded = sum(1 for t in threads if t.message_count > 1)
    latencies = first_reply_latencies_ms(threads)

    return EngagementAnalysis(
        response_rate=responded / len(threads),
        average_response_time_ms=sum(latencies) / len(latencies) if latencies else 0.0,
        trend=classify_trend(threads),
    )


def analyze_response_patterns(threads: Sequence[EmailThread]) -> ResponsePatterns:
    return ResponsePatterns(
        average_thread_length=_mean_thread_length(threads),
        initiated_threads=sum(1 for t in threads if t.message_count == 1),
        responded_threads=sum(1 for t in threads if t.message_count > 1),
    )

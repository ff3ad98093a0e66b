"""
Tests for the engagement analyzer.
"""
import datetime as dt
import pytest

from lead_intelligence.core.engagement import (
    analyze_engagement,
    analyze_response_patterns,
    classify_trend,
    first_reply_latencies_ms,
)
from lead_intelligence.models.intelligence import EngagementTrend


class TestAnalyzeEngagement:

    def test_no_threads(self):
        analysis = analyze_engagement([])

        assert analysis.response_rate == 0.0
        assert analysis.average_response_time_ms == 0.0
        assert analysis.trend == EngagementTrend.NONE

    def test_response_rate_and_latency(self, make_thread):
        threads = [
            make_thread(messages=2, gap=dt.timedelta(hours=1)),
            make_thread(messages=3, gap=dt.timedelta(hours=3)),
            make_thread(messages=1),
            make_thread(messages=1),
        ]

        analysis = analyze_engagement(threads)

        assert analysis.response_rate == 0.5
        assert analysis.average_response_time_ms == pytest.approx(2 * 3600 * 1000)

    def test_non_positive_gaps_are_ignored(self, make_thread):
        same_instant = make_thread(messages=2, gap=dt.timedelta(0))
        replied = make_thread(messages=2, gap=dt.timedelta(minutes=30))

        assert first_reply_latencies_ms([same_instant, replied]) == [30 * 60 * 1000]

    def test_latency_uses_chronological_order(self, now, make_thread):
        """Messages stored out of order still measure first -> second reply."""
        thread = make_thread(messages=3, gap=dt.timedelta(hours=2))
        thread.messages.reverse()

        assert first_reply_latencies_ms([thread]) == [2 * 3600 * 1000]


class TestClassifyTrend:
    """Threads are passed most recent first."""

    def test_increasing(self, make_thread):
        threads = [make_thread(messages=7), make_thread(messages=5)]
        assert classify_trend(threads) == EngagementTrend.INCREASING

    def test_decreasing(self, make_thread):
        threads = [make_thread(messages=3), make_thread(messages=4)]
        assert classify_trend(threads) == EngagementTrend.DECREASING

    def test_exact_rise_factor_is_stable(self, make_thread):
        """6 vs 5 messages is exactly 1.2x; the comparison is strict."""
        threads = [make_thread(messages=6), make_thread(messages=5)]
        assert classify_trend(threads) == EngagementTrend.STABLE

    def test_odd_count_gives_recent_half_the_extra_thread(self, make_thread):
        # recent = [4, 4] mean 4.0, older = [2] mean 2.0
        threads = [make_thread(messages=4), make_thread(messages=4), make_thread(messages=2)]
        assert classify_trend(threads) == EngagementTrend.INCREASING

    def test_single_thread_compares_against_empty_half(self, make_thread):
        assert classify_trend([make_thread(messages=1)]) == EngagementTrend.INCREASING


class TestResponsePatterns:

    def test_counts(self, make_thread):
        threads = [make_thread(messages=1), make_thread(messages=1), make_thread(messages=4)]

        patterns = analyze_response_patterns(threads)

        assert patterns.average_thread_length == 2.0
        assert patterns.initiated_threads == 2
        assert patterns.responded_threads == 1

    def test_empty(self):
        patterns = analyze_response_patterns([])

        assert patterns.average_thread_length == 0.0
        assert patterns.initiated_threads == 0
        assert patterns.responded_threads == 0

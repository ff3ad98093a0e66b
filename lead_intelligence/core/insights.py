"""
Insight Generator
Independent threshold checks; each fires at most once per recomputation.
"""
from dataclasses import dataclass
from typing import Callable, List

from lead_intelligence.core.scoring import round_half_up
from lead_intelligence.models.intelligence import (
    Insight,
    InsightCategory,
    InsightImpact,
    LeadAnalysis,
)


@dataclass(frozen=True)
class InsightRule:
    type: str
    category: InsightCategory
    title: str
    applies: Callable[[LeadAnalysis], bool]
    describe: Callable[[LeadAnalysis], str]
    confidence: Callable[[LeadAnalysis], float]
    suggested_actions: tuple


INSIGHT_RULES: tuple[InsightRule, ...] = (
    InsightRule(
        type="engagement_spike",
        category=InsightCategory.POSITIVE,
        title="High Engagement Detected",
        applies=lambda a: a.engagement_score > 80,
        describe=lambda a: "This lead is showing exceptional engagement levels",
        confidence=lambda a: 0.9,
        suggested_actions=("Schedule immediate follow-up", "Prepare detailed proposal"),
    ),
    InsightRule(
        type="urgency_increase",
        category=InsightCategory.URGENT,
        title="Time-Sensitive Opportunity",
        applies=lambda a: a.urgency_score > 70,
        describe=lambda a: "Multiple indicators suggest this lead needs immediate attention",
        confidence=lambda a: 0.85,
        suggested_actions=("Contact within 2 hours", "Prioritize in pipeline"),
    ),
    InsightRule(
        type="high_conversion_probability",
        category=InsightCategory.POSITIVE,
        title="High Conversion Likelihood",
        applies=lambda a: a.conversion_probability > 0.7,
        describe=lambda a: f"{round_half_up(a.conversion_probability * 100)}% probability of conversion",
        confidence=lambda a: a.conversion_probability,
        suggested_actions=("Prepare closing materials", "Schedule property showing"),
    ),
)


def generate_insights(org_id: str, analysis: LeadAnalysis) -> List[Insight]:
    """
    Build the insights that fire for this analysis.

    No deduplication against earlier runs: a threshold that stays true
    produces a new record on every recomputation.
    """
    return [
        Insight(
            org_id=org_id,
            type=rule.type,
            category=rule.category,
            title=rule.title,
            description=rule.describe(analysis),
            confidence=rule.confidence(analysis),
            impact=InsightImpact.HIGH,
            action_required=True,
            suggested_actions=list(rule.suggested_actions),
            data_points=analysis.scores,
        )
        for rule in INSIGHT_RULES
        if rule.applies(analysis)
    ]

"""
Content Signal Extraction
Deterministic keyword heuristics over plaintext message bodies:
pain points, competitor mentions and price signals.
"""
import re
from typing import Iterable, List, Sequence

from lead_intelligence.models.intelligence import (
    CompetitorMention,
    PriceRange,
    PriceSignals,
)
from lead_intelligence.models.signals import EmailThread

DEFAULT_PRICE_RANGE = (250_000.0, 500_000.0)
MIN_PROPERTY_PRICE = 10_000.0
MAX_PAIN_POINTS = 5

_MULTIPLIERS = {"k": 1_000, "m": 1_000_000, "million": 1_000_000}


def _compile(patterns: Iterable[str]) -> List[re.Pattern]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


class ContentSignalExtractor:
    """
    Keyword extractor; the same bodies always produce the same signals.

    Usage:
        >>> extractor = ContentSignalExtractor()
        >>> extractor.pain_points(threads)
        ['Mentions budget', 'Mentions asap']
    """

    PAIN_POINT_KEYWORDS = [
        "urgent", "quickly", "asap", "deadline", "frustrated",
        "budget", "expensive", "affordable", "cheap",
        "timing", "schedule", "availability",
    ]

    COMPETITORS = ["Zillow", "Redfin", "Realtor.com", "Compass"]

    BUDGET_CONCERN_PATTERNS = [
        r"\bbudget\b",
        r"\bcan'?t\s+afford\b",
        r"\b(too|very|really)\s+expensive\b",
        r"\bout\s+of\s+(our|my)\s+(price\s+)?range\b",
        r"\bover\s+(our|my)\s+budget\b",
        r"\btight\s+on\s+money\b",
    ]

    NEGOTIATION_PATTERNS = [
        r"\bnegotiat\w*",
        r"\bcounter[\s-]?offer\b",
        r"\bbest\s+price\b",
        r"\blower\s+the\s+price\b",
        r"\bprice\s+reduction\b",
        r"\bcome\s+down\b",
        r"\bwilling\s+to\s+accept\b",
    ]

    PRICE_PATTERN = re.compile(
        r"\$\s?(?P<dollars>\d[\d,]*(?:\.\d+)?)\s?(?P<dollar_suffix>k|m|million)?\b"
        r"|\b(?P<bare>\d+(?:\.\d+)?)\s?(?P<bare_suffix>k|m|million)\b",
        re.IGNORECASE,
    )

    def __init__(self):
        self._pain_patterns = [
            (keyword, re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE))
            for keyword in self.PAIN_POINT_KEYWORDS
        ]
        self._competitor_patterns = [
            (name, re.compile(rf"\b{re.escape(name)}\b", re.IGNORECASE))
            for name in self.COMPETITORS
        ]
        self._budget_patterns = _compile(self.BUDGET_CONCERN_PATTERNS)
        self._negotiation_patterns = _compile(self.NEGOTIATION_PATTERNS)

    @staticmethod
    def _bodies(threads: Sequence[EmailThread]) -> List[str]:
        return [m.body for t in threads for m in t.messages if m.body]

    def pain_points(self, threads: Sequence[EmailThread]) -> List[str]:
        """Keywords in list order, first five that appear anywhere."""
        text = "\n".join(self._bodies(threads))
        found = [
            f"Mentions {keyword}"
            for keyword, pattern in self._pain_patterns
            if pattern.search(text)
        ]
        return found[:MAX_PAIN_POINTS]

    def competitor_mentions(self, threads: Sequence[EmailThread]) -> List[CompetitorMention]:
        """One entry per competitor named in at least one message, counted per message."""
        bodies = self._bodies(threads)
        mentions = []
        for name, pattern in self._competitor_patterns:
            count = sum(1 for body in bodies if pattern.search(body))
            if count:
                mentions.append(CompetitorMention(name=name, mentions=count, sentiment="neutral"))
        return mentions

    def price_amounts(self, text: str) -> List[float]:
        amounts = []
        for match in self.PRICE_PATTERN.finditer(text):
            raw = match.group("dollars") or match.group("bare")
            suffix = (match.group("dollar_suffix") or match.group("bare_suffix") or "").lower()
            try:
                amount = float(raw.replace(",", ""))
            except ValueError:
                continue
            amount *= _MULTIPLIERS.get(suffix, 1)
            if amount >= MIN_PROPERTY_PRICE:
                amounts.append(amount)
        return amounts

    def price_signals(self, threads: Sequence[EmailThread]) -> PriceSignals:
        text = "\n".join(self._bodies(threads))

        amounts = self.price_amounts(text)
        budget_concerns = any(p.search(text) for p in self._budget_patterns)
        negotiation_signals = any(p.search(text) for p in self._negotiation_patterns)

        if budget_concerns and negotiation_signals:
            sensitivity = "high"
        elif budget_concerns or negotiation_signals or amounts:
            sensitivity = "medium"
        else:
            sensitivity = "low"

        low, high = (min(amounts), max(amounts)) if amounts else DEFAULT_PRICE_RANGE

        return PriceSignals(
            price_range=PriceRange(min=low, max=high),
            sensitivity=sensitivity,
            budget_concerns=budget_concerns,
            negotiation_signals=negotiation_signals,
        )

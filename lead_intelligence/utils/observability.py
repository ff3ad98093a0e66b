"""
Logging
loguru configuration plus helpers that attach org/subject context to records.
"""
import sys
from loguru import logger
from typing import Any
from lead_intelligence.config import get_settings

DEV_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)


def configure_logging():
    """
    Replace loguru's default sink.

    Colorized lines in development; one JSON object per record when
    ENABLE_STRUCTURED_LOGGING is set, so bound context ends up as fields.
    """
    settings = get_settings()
    logger.remove()

    if settings.enable_structured_logging:
        logger.add(sys.stderr, format="{message}", level=settings.log_level, serialize=True)
    else:
        logger.add(sys.stderr, format=DEV_FORMAT, level=settings.log_level, colorize=True)

    logger.info(
        f"Logging configured: level={settings.log_level}, "
        f"structured={settings.enable_structured_logging}"
    )


def log_analysis(
    org_id: str,
    subject_key: str,
    outcome: str,
    duration_ms: float | None = None,
    **context: Any
):
    """
    One record per intelligence request.

    Args:
        org_id: Organization scope
        subject_key: "lead:<id>" or "contact:<id>"
        outcome: "cache_hit", "recomputed" or "failed"
        duration_ms: Pipeline time, recomputations only
        **context: Scores, signal counts and similar

    Example:
        >>> log_analysis("org_1", "lead:65f0c2", "recomputed", duration_ms=41.2, overall_score=45)
    """
    fields = {"org_id": org_id, "subject": subject_key, "outcome": outcome, **context}
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 2)

    logger.bind(**fields).info(f"LeadIntelligence | {outcome} | {subject_key}")


def log_business_event(event_type: str, subject_key: str, **details: Any):
    """Events worth counting downstream: insights emitted, custom insights created."""
    logger.bind(event_type=event_type, subject=subject_key, **details).success(
        f"Business Event: {event_type}"
    )

"""
Centralized Configuration System
Environment-aware settings for the scoring engine, persistence and API.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Dict, Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Production-grade configuration management.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # MONGODB
    # ============================================
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "lead_intelligence"
    mongodb_max_pool_size: int = 50
    mongodb_min_pool_size: int = 5
    mongodb_server_selection_timeout_ms: int = 5000

    # ============================================
    # SCORING WINDOWS
    # ============================================
    freshness_window_hours: int = 24       # Cached profile reuse window
    thread_lookback_limit: int = 50        # Most recent threads scanned per subject
    calendar_lookback_days: int = 90
    prediction_ttl_days: int = 30

    # ============================================
    # READ SHAPES
    # ============================================
    profile_insight_limit: int = 10
    profile_prediction_limit: int = 5
    preview_item_limit: int = 3
    top_profiles_default_limit: int = 10

    # ============================================
    # CONCURRENCY
    # ============================================
    subject_lock_backend: Literal["memory", "mongo"] = "mongo"
    subject_lock_lease_seconds: int = 60
    subject_lock_timeout_seconds: float = 15.0
    subject_lock_poll_seconds: float = 0.2

    # ============================================
    # FIELD ENCRYPTION
    # ============================================
    # org_id -> urlsafe base64 Fernet key, e.g. ORG_ENCRYPTION_KEYS='{"org_1": "..."}'
    org_encryption_keys: Dict[str, str] = {}

    # ============================================
    # OBSERVABILITY
    # ============================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "staging", "production"] = "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()


# Convenience accessor for common use
settings = get_settings()

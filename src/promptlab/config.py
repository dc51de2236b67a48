"""Shared configuration for promptlab."""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class PromptLabSettings(BaseSettings):
    """Settings for the prompt version store, experiments and decision engine."""

    # Persistence: any SQLAlchemy URL (sqlite:///..., postgresql+psycopg2://...)
    DATABASE_URL: str = "sqlite:///./data/promptlab.db"
    DB_ECHO: bool = False
    # SQLite only: seconds a writer waits for the database lock
    DB_BUSY_TIMEOUT: float = 30.0

    # A/B test defaults, applied when create_test is called without a config
    AB_MIN_SAMPLES_PER_VARIANT: int = 10
    AB_MAX_SAMPLES_TOTAL: Optional[int] = None
    AB_SIGNIFICANCE_THRESHOLD: float = 0.05
    AB_AUTO_ADOPT: bool = False
    # Absolute score points (0-100 scale) the winner must lead by
    AB_MIN_IMPROVEMENT: float = 10.0

    # Retry for conflicting concurrent writes (version numbering, activation)
    WRITE_RETRY_ATTEMPTS: int = 5
    WRITE_RETRY_INITIAL_DELAY: float = 0.05

    # Quality scores (file-based provider): JSONL written by the scoring engine
    QUALITY_SCORES_PATH: str = "./data/quality/scores.jsonl"

    # Audit notifications (version activation, test creation/completion)
    ENABLE_AUDIT_LOG: bool = True
    AUDIT_LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


@lru_cache
def get_settings() -> PromptLabSettings:
    return PromptLabSettings()


def get_settings_dep() -> PromptLabSettings:
    """FastAPI dependency that returns settings."""
    return get_settings()

"""
qualifier/config.py — Central configuration loaded from environment variables.
All modules import settings from here; never read os.environ directly elsewhere.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────────────────────
    database_url: str = Field(..., description="SQLAlchemy connection URI for the profile store")

    # ── Follow-up ─────────────────────────────────────────────────────────────
    follow_up_max_questions: int = Field(
        default=2,
        gt=0,
        description="Max follow-up questions shown in a single prompt",
    )
    default_snooze_hours: int = Field(
        default=24,
        gt=0,
        description="Snooze duration used when the caller does not give one",
    )

    # ── Questionnaire ─────────────────────────────────────────────────────────
    engagement_question_id: str = Field(
        default="specific_needs",
        description="Free-text question whose answer feeds the text engagement score",
    )
    draft_key_prefix: str = Field(
        default="lead_qualification_draft",
        description="Namespace for in-progress questionnaire drafts",
    )

    # ── Completion webhook ────────────────────────────────────────────────────
    completion_webhook_url: str | None = Field(
        default=None,
        description="If set, completed questionnaires are also POSTed here",
    )
    webhook_timeout_seconds: float = Field(default=10.0, gt=0)

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO")


# Singleton — import this everywhere
settings = Settings()

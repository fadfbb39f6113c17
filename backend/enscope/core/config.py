"""
Enscope - Configuration
=======================

All application settings loaded from environment variables.
Uses pydantic-settings for validation and type conversion.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PenaltyRule(BaseModel):
    """
    One row of the contextual scoring penalty table.

    A step of workflow `scored_workflow_index` loses `penalty` points when the
    project holds a gap of one of `gap_types` with `severity` recorded
    against workflow `gap_workflow_index`.
    """

    gap_workflow_index: int = Field(ge=1, le=8)
    scored_workflow_index: int = Field(ge=1, le=8)
    penalty: int = Field(ge=0)
    gap_types: list[str] = ["cmdb", "discovery"]
    severity: str = "red"


def _default_penalty_rules() -> list[PenaltyRule]:
    # Context gaps on correlation (3) or diagnosis (5) weaken both workflows.
    return [
        PenaltyRule(gap_workflow_index=gap_index, scored_workflow_index=scored_index, penalty=4)
        for gap_index in (3, 5)
        for scored_index in (3, 5)
    ]


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "Enscope"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["development", "staging", "production", "test"] = "development"
    DEBUG: bool = False

    # ==========================================================================
    # API
    # ==========================================================================
    API_PREFIX: str = "/api"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # ==========================================================================
    # Database (supports SQLite and PostgreSQL)
    # ==========================================================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./enscope.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_ECHO: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.DATABASE_URL

    # ==========================================================================
    # LLM (Anthropic)
    # ==========================================================================
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-sonnet-4-20250514"
    LLM_MAX_TOKENS: int = 1024
    REPORT_MAX_TOKENS: int = 2048
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Directory holding global-system-context.txt and workflow-<n>.txt
    PROMPTS_DIR: Optional[str] = None

    # ==========================================================================
    # Assessment
    # ==========================================================================
    DEFAULT_ENGAGEMENT_TYPE: str = "ITOM Event Management"
    SCORE_PENALTY_RULES: list[PenaltyRule] = Field(default_factory=_default_penalty_rules)
    MAX_GAP_FLAGS: int = 3

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @computed_field  # type: ignore[misc]
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @computed_field  # type: ignore[misc]
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @computed_field  # type: ignore[misc]
    @property
    def is_test(self) -> bool:
        return self.ENVIRONMENT == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()

"""Configuration management for Concord using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from concord.core.enums import ReportType


class ConfidenceThresholds(BaseSettings):
    """Confidence thresholds that gate escalation to a human reviewer."""

    model_config = SettingsConfigDict(
        env_prefix="CONCORD_THRESHOLD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    min_overall: float = 0.7
    min_individual: float = 0.6
    discrepancy_limit: int = 3


class ReviewRequirements(BaseSettings):
    """Per report type switch for mandatory review."""

    model_config = SettingsConfigDict(
        env_prefix="CONCORD_REVIEW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    incident_report: bool = True
    daily_log: bool = False
    medical_report: bool = True
    audit_report: bool = True

    def requires_review(self, report_type: str | ReportType) -> bool:
        """Check whether a report type is configured for review."""
        known = report_type if isinstance(report_type, ReportType) else ReportType.parse(report_type)
        if known is None:
            return False
        return bool(getattr(self, known.value))


class TimeoutSettings(BaseSettings):
    """Deadlines (in seconds) and retry budget for analyzer calls."""

    model_config = SettingsConfigDict(
        env_prefix="CONCORD_TIMEOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    analyzer_a: float = 30.0
    analyzer_b: float = 30.0
    total: float = 120.0
    retries: int = 1
    retry_backoff: float = 1.0
    retry_backoff_max: float = 10.0


class ConsensusSettings(BaseSettings):
    """Tuning for discrepancy detection and confidence merging."""

    model_config = SettingsConfigDict(
        env_prefix="CONCORD_CONSENSUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    similarity_threshold: float = 0.6
    severity_gap: int = 1
    spread_weight: float = 0.25
    discrepancy_decay: float = 0.85


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Feature flag
    enabled: bool = Field(default=False, alias="CONCORD_ENABLED")

    # API Keys
    anthropic_api_key: str = Field(default="", alias="ANTHROPIC_API_KEY")

    # Analyzer slots: profile id + model
    analyzer_a: str = Field(default="compliance", alias="CONCORD_ANALYZER_A")
    analyzer_a_model: str = Field(
        default="claude-opus-4-5-20251101", alias="CONCORD_ANALYZER_A_MODEL"
    )
    analyzer_b: str = Field(default="security", alias="CONCORD_ANALYZER_B")
    analyzer_b_model: str = Field(
        default="claude-sonnet-4-5-20250929", alias="CONCORD_ANALYZER_B_MODEL"
    )
    max_tokens: int = Field(default=2000, alias="CONCORD_MAX_TOKENS")
    temperature: float = Field(default=0.1, alias="CONCORD_TEMPERATURE")

    # Logging
    log_level: str = Field(default="INFO", alias="CONCORD_LOG_LEVEL")

    # Nested settings
    thresholds: ConfidenceThresholds = Field(default_factory=ConfidenceThresholds)
    requirements: ReviewRequirements = Field(default_factory=ReviewRequirements)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    consensus: ConsensusSettings = Field(default_factory=ConsensusSettings)

    @field_validator("anthropic_api_key", mode="before")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v:
            return v
        if not v.startswith("sk-ant-"):
            raise ValueError("Invalid Anthropic API key format")
        return v

    @property
    def prompts_dir(self) -> Path:
        """Get the prompts directory path."""
        return Path(__file__).parent / "prompts"

    @property
    def is_configured(self) -> bool:
        """Check if essential settings are configured."""
        return bool(self.anthropic_api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

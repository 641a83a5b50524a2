from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class StorageConfig(BaseModel):
    """Event store backend selection and on-disk layout."""

    backend: str = Field("json", description="json (one file per learner) or memory.")
    data_dir: Path = Field(Path("data/learners"))
    max_events: int = Field(1000, ge=1, description="Retention cap for events per learner.")

    @field_validator("backend")
    @classmethod
    def known_backend(cls, value: str) -> str:
        """Reject backends the store factory cannot build."""
        normalized = value.lower()
        if normalized not in {"json", "memory"}:
            raise ValueError("backend must be 'json' or 'memory'")
        return normalized


class AnalyticsConfig(BaseModel):
    """Output bounds and goals used when assembling a snapshot."""

    recent_activity_limit: int = Field(10, ge=1)
    recommendation_limit: int = Field(5, ge=1)
    daily_goal_minutes: int = Field(30, ge=1)


class BootstrapConfig(BaseModel):
    """Cold-start seeding of synthetic history for first-time learners."""

    enabled: bool = True
    days: int = Field(7, ge=1, le=31)
    game_mode: str = Field("classic_quiz")


class LoggingConfig(BaseModel):
    """Controls for logging output and format."""

    level: str = Field("INFO")
    use_json: bool = False


class Settings(BaseModel):
    """Top-level project configuration aggregating all sub-settings."""

    project_name: str = Field("Learner Analytics")
    storage: StorageConfig = Field(default_factory=StorageConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

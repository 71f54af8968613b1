"""
Application settings management.

Settings are loaded from environment variables with .env file support.
Review behaviour (insight windows, coaching limits, schedules) is loaded
from config/review_config.yaml. All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )
    data_dir: Path = Field(
        default=Path("data"), description="Directory for database and other data files"
    )

    # ==========================================================================
    # Database
    # ==========================================================================

    database_path: Path = Field(
        default=Path("data/gtd_review.db"), description="Path to SQLite database file"
    )

    # ==========================================================================
    # Review Defaults
    # ==========================================================================

    default_user_id: str = Field(
        default="local-user",
        description="User ID assumed when a request carries no X-User-ID header",
    )
    week_start_day: int = Field(
        default=0,
        ge=0,
        le=6,
        description="First day of the review week (0 = Monday, 6 = Sunday)",
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")

    # ==========================================================================
    # Logging
    # ==========================================================================

    log_dir: Path = Field(default=Path("logs"), description="Directory for per-run log files")
    log_runs_to_keep: int = Field(
        default=5, ge=1, le=100, description="Run log files kept in log_dir, newest first"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")


# ============================================================================
# Review Configuration (from YAML)
# ============================================================================


class InsightsConfig(BaseModel):
    """Windows used when computing review insights."""

    daily_window_days: int = Field(
        default=1, ge=1, le=31, description="Days of completions a daily review covers"
    )
    weekly_window_days: int = Field(
        default=7, ge=1, le=31, description="Days of completions a weekly review covers"
    )


class CoachingConfig(BaseModel):
    """Coaching prompt selection configuration."""

    prompts_file: str = Field(
        default="coaching_prompts.yaml",
        description="Coaching prompt file, relative to the config directory",
    )
    max_prompts: int = Field(default=3, ge=1, le=10)
    compact_max_prompts: int = Field(default=1, ge=1, le=10)
    large_inbox_threshold: int = Field(
        default=10, ge=0, description="Inbox size above which the inbox counts as large"
    )
    stalled_project_days: int = Field(
        default=14,
        ge=1,
        description="Days without a completed task before a project counts as stalled",
    )


class ReminderConfig(BaseModel):
    """Reminder settings for a review schedule."""

    enabled: bool = True
    before_minutes: int = Field(default=15, ge=0, le=1440)


class ReviewScheduleConfig(BaseModel):
    """When a review type is expected to happen."""

    type: str
    enabled: bool = True
    time: str = Field(default="09:00", pattern=r"^\d{2}:\d{2}$")
    days: List[int] = Field(
        default_factory=list, description="Weekdays, 0 = Monday ... 6 = Sunday"
    )
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    auto_start: bool = False

    @field_validator("days")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        """Keep weekdays in range and sorted."""
        for day in v:
            if day < 0 or day > 6:
                raise ValueError(f"Invalid weekday {day}, expected 0-6")
        return sorted(set(v))


def _default_schedules() -> List[ReviewScheduleConfig]:
    return [
        ReviewScheduleConfig(
            type="daily",
            time="09:00",
            days=[0, 1, 2, 3, 4],
            reminders=ReminderConfig(before_minutes=15),
        ),
        ReviewScheduleConfig(
            type="weekly",
            time="10:00",
            days=[4],
            reminders=ReminderConfig(before_minutes=30),
        ),
    ]


class ReviewConfig(BaseModel):
    """
    Complete review configuration loaded from review_config.yaml.

    Holds tunables that the review services would otherwise hardcode.
    """

    insights: InsightsConfig = Field(default_factory=InsightsConfig)
    coaching: CoachingConfig = Field(default_factory=CoachingConfig)
    schedules: List[ReviewScheduleConfig] = Field(default_factory=_default_schedules)


def load_review_config(config_path: Optional[Path] = None) -> ReviewConfig:
    """
    Load review configuration from YAML file.

    Args:
        config_path: Path to review_config.yaml. If None, looks in the project
            config directory and then the working directory.

    Returns:
        ReviewConfig with validated settings (defaults when no file exists)

    Raises:
        pydantic.ValidationError: If the file content is invalid
    """
    if config_path is None:
        project_root = Path(__file__).resolve().parent.parent.parent
        candidates = [
            project_root / "config" / "review_config.yaml",
            Path.cwd() / "config" / "review_config.yaml",
        ]
        config_path = next((p for p in candidates if p.exists()), None)
        if config_path is None:
            return ReviewConfig()

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return ReviewConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return ReviewConfig()

    return ReviewConfig(**config_data)


# Global settings instance
settings = Settings()

# Global review config instance
review_config = load_review_config()

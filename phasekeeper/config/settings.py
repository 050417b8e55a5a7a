# ABOUTME: Configuration settings for the campaign phase coordinator using Pydantic Settings.
# ABOUTME: Loads Redis, scheduler, locking and event delivery options from the environment.

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    # Redis Configuration
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for campaign state, locks and queues"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_dir: str = Field(
        default="logs",
        description="Directory for rotating log files"
    )

    # Time Gate Scheduler
    gate_poll_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between time gate expiry sweeps"
    )
    gate_warning_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between time gate warning checks"
    )
    gate_warning_thresholds_hours: str = Field(
        default="24,6,1",
        description="Remaining-time warning thresholds in hours (comma-separated)"
    )

    # Per-campaign exclusive scope
    campaign_lock_wait_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Maximum seconds to wait for a campaign's exclusive scope"
    )
    campaign_lock_ttl_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Expiry of a distributed campaign lock held by a crashed worker"
    )

    # Event delivery (RQ)
    notification_queue: str = Field(
        default="notifications",
        description="RQ queue name for phase, pass and gate events"
    )
    event_job_timeout: int = Field(
        default=30,
        description="Maximum seconds for a single event delivery job"
    )
    event_result_ttl: int = Field(
        default=300,
        description="Seconds to keep successful delivery results"
    )
    event_failure_ttl: int = Field(
        default=600,
        description="Seconds to keep failed delivery jobs for debugging"
    )
    event_retry_attempts: int = Field(
        default=5,
        ge=1,
        description="Delivery attempts before an event is dropped"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def gate_warning_thresholds(self) -> list[int]:
        """Parse comma-separated warning thresholds, largest first"""
        hours = {int(x.strip()) for x in self.gate_warning_thresholds_hours.split(",") if x.strip()}
        return sorted(hours, reverse=True)


# Singleton settings instance - lazy initialization to allow import without .env
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings

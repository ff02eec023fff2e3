"""Application configuration."""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RELAYFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="RelayFlow", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: str = Field(default="development", description="Environment")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Log level")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./relayflow.db", description="SQLAlchemy database URL"
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # Celery
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", description="Celery broker URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", description="Celery result backend"
    )
    celery_task_serializer: str = Field(
        default="json", description="Celery task serializer"
    )
    celery_result_serializer: str = Field(
        default="json", description="Celery result serializer"
    )
    celery_accept_content: List[str] = Field(
        default=["json"], description="Celery accept content"
    )
    celery_timezone: str = Field(default="UTC", description="Celery timezone")
    workflow_queue: str = Field(default="workflows", description="Queue for workflow runs")

    # Execution
    execution_max_attempts: int = Field(
        default=3, description="Run attempts before a failed run is abandoned"
    )
    execution_retry_backoff: int = Field(
        default=5, description="Base retry delay in seconds"
    )
    execution_retry_backoff_max: int = Field(
        default=300, description="Upper bound for the retry delay in seconds"
    )
    max_execution_time: int = Field(
        default=3600, description="Max execution time in seconds"
    )
    delay_default_seconds: float = Field(
        default=1.0, description="Delay used when a delay node has no valid duration"
    )
    redact_keys: List[str] = Field(
        default=["password", "secret", "token", "key", "auth", "credential"],
        description="Key fragments redacted from persisted context snapshots",
    )

    # Progress
    progress_channel_prefix: str = Field(
        default="relayflow:executions", description="Redis pub/sub channel prefix"
    )

    # Integrations
    http_timeout: float = Field(default=30.0, description="Outbound HTTP timeout in seconds")
    slack_api_url: str = Field(
        default="https://slack.com/api", description="Slack Web API base URL"
    )
    gmail_api_url: str = Field(
        default="https://gmail.googleapis.com/gmail/v1", description="Gmail API base URL"
    )
    sheets_api_url: str = Field(
        default="https://sheets.googleapis.com/v4", description="Google Sheets API base URL"
    )
    email_from: Optional[str] = Field(default=None, description="Default From header")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() in ("development", "dev")

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment.lower() in ("testing", "test")


@lru_cache()
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return Settings()


# Global settings instance
settings = get_settings()

"""
FeedSweep Configuration System
==============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class IngestionSettings(BaseModel):
    """Feed fetching and article normalization configuration."""
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; FeedSweep/1.0; RSS/Atom feed reader)",
        description="User-Agent header sent with every feed request",
    )
    request_timeout: int = Field(default=30, ge=5, le=300, description="Feed request timeout in seconds")
    max_concurrent_feeds: int = Field(default=5, ge=1, le=20, description="Concurrent feed fetches per sweep")
    deactivation_threshold: int = Field(
        default=2, ge=1, le=100,
        description="Consecutive fetch failures after which a feed is deactivated",
    )
    description_max_length: int = Field(default=500, ge=1, le=10000, description="Max plain-text description length")
    content_html_max_length: int = Field(default=50000, ge=1, le=1000000, description="Max stored HTML content length")
    content_text_max_length: int = Field(default=2000, ge=1, le=100000, description="Max plain-text content length")

    @field_validator('user_agent')
    @classmethod
    def validate_user_agent(cls, v):
        """A blank User-Agent gets requests rejected by many hosts."""
        v = v.strip()
        if not v:
            raise ValueError("user_agent cannot be empty")
        return v


class SchedulerSettings(BaseModel):
    """Sweep trigger and retention configuration."""
    interval_seconds: int = Field(default=60, ge=10, le=3600, description="Seconds between sweeps")
    min_refetch_minutes: float = Field(
        default=4.0, ge=0.0,
        description="Skip a due feed fetched less than this many minutes ago",
    )
    manual_min_refetch_minutes: float = Field(
        default=2.0, ge=0.0,
        description="Same guard for manual fetch-all runs",
    )
    article_retention_days: int = Field(default=7, ge=1, le=3650, description="Days to keep articles")
    cleanup_hour: int = Field(default=3, ge=0, le=23, description="UTC hour for daily retention cleanup")


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/feedsweep.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedsweep.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class OperationLogSettings(BaseModel):
    """In-memory operation log configuration."""
    capacity: int = Field(default=200, ge=1, le=10000, description="Maximum retained log entries")


class FeedSweepSettings(BaseSettings):
    """Main application settings."""

    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    operation_log: OperationLogSettings = Field(default_factory=OperationLogSettings)

    app_name: str = Field(default="FeedSweep", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDSWEEP_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except Exception as e:
                errors.append(f"Invalid log file path: {e}")

        ingestion = self.ingestion
        if ingestion.content_text_max_length > ingestion.content_html_max_length:
            errors.append("content_text_max_length cannot exceed content_html_max_length")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> FeedSweepSettings:
    """Load settings from environment variables and defaults.

    Environment variables override Pydantic Field defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env, then Field defaults
        settings = FeedSweepSettings()
        settings.validate_configuration()
        return settings

    except Exception as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        )


_settings: Optional[FeedSweepSettings] = None


def get_settings(reload: bool = False) -> FeedSweepSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings

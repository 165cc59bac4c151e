"""
FeedSweep Data Models
=====================

Pydantic data models for type safety and validation throughout the
application. These models correspond to the database schema and provide
validation, serialization, and type hints.
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
import uuid


# Default article field limits, overridable through ingestion settings
DESCRIPTION_MAX_LENGTH = 500
CONTENT_HTML_MAX_LENGTH = 50000
CONTENT_TEXT_MAX_LENGTH = 2000

DEFAULT_CRON_EXPRESSION = "0 * * * *"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FeedSource(BaseModel):
    """Configured feed subscription."""
    id: Optional[int] = Field(default=None, description="Database primary key")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    url: str = Field(..., min_length=1, description="Feed document URL")
    category: str = Field(default="tech", max_length=100, description="Free-form grouping")
    cron_expression: str = Field(default=DEFAULT_CRON_EXPRESSION, description="5-field fetch schedule")
    is_active: bool = Field(default=True, description="Whether the feed is swept")
    error_count: int = Field(default=0, ge=0, description="Consecutive fetch failures")
    last_error: Optional[str] = Field(default=None, description="Message of the last failure")
    last_fetch_at: Optional[datetime] = Field(default=None, description="Last successful fetch")
    created_at: Optional[datetime] = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = Field(default=None)

    @field_validator('cron_expression')
    @classmethod
    def normalize_cron(cls, v):
        """Collapse runs of whitespace between cron fields."""
        return " ".join(v.split())

    @field_validator('last_fetch_at', 'created_at', 'updated_at')
    @classmethod
    def normalize_timestamps(cls, v):
        return ensure_utc(v)

    def is_healthy(self) -> bool:
        """Check if feed is considered healthy."""
        return self.is_active and self.error_count == 0

    def __str__(self) -> str:
        return f"FeedSource({self.name}:{self.url})"


class ArticleRecord(BaseModel):
    """One ingested feed item.

    Text lengths are bounded by build_article_record using the configured
    ingestion limits; the model itself does not truncate.
    """
    id: Optional[int] = Field(default=None, description="Database primary key")
    feed_id: int = Field(..., description="Owning feed")
    guid: str = Field(..., min_length=1, description="Store-wide deduplication key")
    title: str = Field(..., min_length=1, description="Article title")
    link: str = Field(default="", description="Article URL")
    description: str = Field(default="", description="Plain-text summary")
    content_html: str = Field(default="", description="HTML body")
    content_text: str = Field(default="", description="Plain-text body excerpt")
    author: str = Field(default="", description="Author name")
    published_at: datetime = Field(default_factory=utc_now, description="Publication time (UTC)")
    is_read: bool = Field(default=False)
    created_at: Optional[datetime] = Field(default_factory=utc_now)

    @field_validator('author', 'link', mode='before')
    @classmethod
    def none_to_empty(cls, v):
        return v or ""

    @field_validator('published_at', 'created_at')
    @classmethod
    def normalize_timestamps(cls, v):
        return ensure_utc(v)

    def __str__(self) -> str:
        return f"ArticleRecord({self.title[:50]}...)"


class LogEntry(BaseModel):
    """Operation log record kept in memory only."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=utc_now)
    type: str = Field(..., min_length=1, description="Category tag, e.g. 'rss' or 'error'")
    action: str = Field(..., min_length=1)
    details: Dict[str, Any] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"LogEntry({self.type}:{self.action})"

"""
FeedSweep - Scheduled Feed Ingestion
====================================

Cron-scheduled RSS/Atom ingestion with article deduplication and feed
health tracking.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
- Ingestion: regex-based feed parsing, content normalization, HTTP fetching
- Scheduler: cron matching and recurring sweeps over active feeds
- Monitoring: bounded in-memory operation log
"""

__version__ = "1.0.0"
__author__ = "FeedSweep Development Team"
__description__ = "Scheduled RSS/Atom feed ingestion pipeline"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedSweepError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedSweepError",
]

"""
FeedSweep Database Schema
=========================

SQLite schema with foreign key constraints and indexes:
- feeds: configured feed sources with schedule and health fields
- articles: ingested items, deduplicated by guid
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


REQUIRED_TABLES = {"feeds", "articles"}


class DatabaseSchema:
    """Database schema manager for the FeedSweep SQLite database."""

    def __init__(self, db_path: str = "data/feedsweep.db"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def get_connection(self) -> sqlite3.Connection:
        """Open a raw connection with foreign keys enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def create_tables(self) -> None:
        """Create all database tables and indexes."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA foreign_keys = ON")

            self._create_feeds_table(conn)
            self._create_articles_table(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_feeds_table(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feeds (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                url TEXT NOT NULL,
                category TEXT DEFAULT 'tech',
                cron_expression TEXT NOT NULL DEFAULT '0 * * * *',
                is_active BOOLEAN DEFAULT 1,
                error_count INTEGER DEFAULT 0 CHECK (error_count >= 0),
                last_error TEXT,
                last_fetch_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP
            )
        """
        )

    def _create_articles_table(self, conn: sqlite3.Connection) -> None:
        # guid is UNIQUE so concurrent fetches cannot store the same item twice
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                feed_id INTEGER NOT NULL,
                guid TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL,
                link TEXT DEFAULT '',
                description TEXT DEFAULT '',
                content_html TEXT DEFAULT '',
                content_text TEXT DEFAULT '',
                author TEXT DEFAULT '',
                published_at TIMESTAMP NOT NULL,
                is_read BOOLEAN DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (feed_id) REFERENCES feeds(id) ON DELETE CASCADE
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_feeds_active ON feeds(is_active)",
            "CREATE INDEX IF NOT EXISTS idx_articles_feed ON articles(feed_id)",
            "CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(published_at)",
        ]
        for statement in indexes:
            conn.execute(statement)

    def verify_schema(self) -> bool:
        """Check that every required table exists."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table'"
                ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False

        existing = {row[0] for row in rows}
        missing = REQUIRED_TABLES - existing
        if missing:
            logger.warning(f"Missing tables: {', '.join(sorted(missing))}")
            return False
        return True

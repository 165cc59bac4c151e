"""
Feed Repository
===============

Repository pattern implementation for feed source data management.
Provides the store boundary for feed CRUD and fetch-health bookkeeping.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any

from ..database.connection import DatabaseConnection
from ..database.models import FeedSource, ensure_utc, utc_now
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


UPDATABLE_FIELDS = (
    "name",
    "url",
    "category",
    "cron_expression",
    "is_active",
    "error_count",
    "last_error",
    "last_fetch_at",
)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a timestamp as second-precision ISO-8601 UTC."""
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="seconds")


class FeedRepository:
    """Repository for managing feed sources in the database."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize feed repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("feed_repository")

    def create_feed(self, feed: FeedSource) -> int:
        """Create a new feed in the database.

        Args:
            feed: FeedSource to create

        Returns:
            New feed ID

        Raises:
            DatabaseError: If database operation fails
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO feeds (
                        name, url, category, cron_expression, is_active,
                        error_count, last_error, last_fetch_at, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        feed.name,
                        feed.url,
                        feed.category,
                        feed.cron_expression,
                        feed.is_active,
                        feed.error_count,
                        feed.last_error,
                        to_db_timestamp(feed.last_fetch_at),
                        to_db_timestamp(feed.created_at or utc_now()),
                    ),
                )

                feed_id = cursor.lastrowid
                conn.commit()

                self.logger.info(f"Created feed {feed_id}: {feed.name} ({feed.url})")
                return feed_id

        except Exception as e:
            raise DatabaseError(
                f"Failed to create feed: {e}", error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_feed(self, feed_id: int) -> Optional[FeedSource]:
        """Get feed by ID.

        Returns:
            FeedSource if found, None otherwise
        """
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM feeds WHERE id = ?", (feed_id,)
                ).fetchone()

                return self._row_to_feed(row) if row else None

        except Exception as e:
            self.logger.error(f"Failed to get feed {feed_id}: {e}")
            return None

    def get_all_feeds(self) -> List[FeedSource]:
        """Get every feed, newest first."""
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    "SELECT * FROM feeds ORDER BY created_at DESC, id DESC"
                ).fetchall()
                return [self._row_to_feed(row) for row in rows]

        except Exception as e:
            self.logger.error(f"Failed to list feeds: {e}")
            return []

    def get_active_feeds(self) -> List[FeedSource]:
        """Get all feeds with is_active set.

        Unlike the lookup helpers this raises, so a sweep can tell
        "no active feeds" apart from "feed set could not be loaded".

        Raises:
            DatabaseError: If the query fails
        """
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    "SELECT * FROM feeds WHERE is_active = 1 ORDER BY id"
                ).fetchall()

                return [self._row_to_feed(row) for row in rows]

        except Exception as e:
            raise DatabaseError(
                f"Failed to load active feeds: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def update_feed(self, feed_id: int, **kwargs) -> bool:
        """Update the given feed fields, leaving the others untouched.

        Args:
            feed_id: Feed ID
            **kwargs: Fields to update

        Returns:
            True if a row was updated, False otherwise
        """
        if not kwargs:
            return True

        fields = []
        values = []

        for field, value in kwargs.items():
            if field not in UPDATABLE_FIELDS:
                self.logger.warning(f"Ignoring unknown feed field '{field}'")
                continue
            if isinstance(value, datetime):
                value = to_db_timestamp(value)
            fields.append(f"{field} = ?")
            values.append(value)

        if not fields:
            self.logger.warning(f"No valid fields to update for feed {feed_id}")
            return False

        fields.append("updated_at = ?")
        values.append(to_db_timestamp(utc_now()))
        values.append(feed_id)
        query = f"UPDATE feeds SET {', '.join(fields)} WHERE id = ?"

        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(query, values)
                conn.commit()

                if cursor.rowcount > 0:
                    self.logger.debug(f"Updated feed {feed_id}")
                    return True
                self.logger.warning(f"No feed found with ID {feed_id}")
                return False

        except Exception as e:
            self.logger.error(f"Failed to update feed {feed_id}: {e}")
            return False

    def record_fetch_success(self, feed_id: int, fetched_at: datetime) -> None:
        """Stamp a successful fetch and reset the failure streak.

        Raises:
            DatabaseError: If the update fails
        """
        try:
            with self.db.get_connection() as conn:
                conn.execute(
                    """
                    UPDATE feeds
                    SET last_fetch_at = ?, error_count = 0, last_error = NULL
                    WHERE id = ?
                """,
                    (to_db_timestamp(fetched_at), feed_id),
                )
                conn.commit()

        except Exception as e:
            raise DatabaseError(
                f"Failed to record fetch success for feed {feed_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def record_fetch_failure(self, feed_id: int, message: str, threshold: int) -> None:
        """Extend the failure streak, deactivating the feed at the threshold.

        SQLite evaluates every SET expression against the pre-update row, so
        the deactivation test uses ``error_count + 1``.

        Raises:
            DatabaseError: If the update fails
        """
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    """
                    UPDATE feeds
                    SET error_count = error_count + 1,
                        last_error = ?,
                        is_active = CASE WHEN error_count + 1 >= ? THEN 0 ELSE is_active END
                    WHERE id = ?
                """,
                    (message, threshold, feed_id),
                )

        except Exception as e:
            raise DatabaseError(
                f"Failed to record fetch failure for feed {feed_id}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def delete_feed(self, feed_id: int) -> bool:
        """Delete a feed and, through the foreign key, its articles."""
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute("DELETE FROM feeds WHERE id = ?", (feed_id,))

                if cursor.rowcount > 0:
                    self.logger.info(f"Deleted feed {feed_id}")
                    return True
                self.logger.warning(f"No feed found with ID {feed_id}")
                return False

        except Exception as e:
            self.logger.error(f"Failed to delete feed {feed_id}: {e}")
            return False

    def get_feed_statistics(self) -> Dict[str, Any]:
        """Aggregate feed health counters."""
        try:
            with self.db.get_connection() as conn:
                stats = conn.execute(
                    """
                    SELECT
                        COUNT(*) as total_feeds,
                        COUNT(CASE WHEN is_active = 1 THEN 1 END) as active_feeds,
                        COUNT(CASE WHEN error_count > 0 THEN 1 END) as feeds_with_errors,
                        MAX(last_fetch_at) as last_successful_fetch
                    FROM feeds
                """
                ).fetchone()

                return dict(stats) if stats else {}

        except Exception as e:
            self.logger.error(f"Failed to get feed statistics: {e}")
            return {}

    def _row_to_feed(self, row) -> FeedSource:
        return FeedSource(
            id=row["id"],
            name=row["name"],
            url=row["url"],
            category=row["category"] or "tech",
            cron_expression=row["cron_expression"],
            is_active=bool(row["is_active"]),
            error_count=row["error_count"] or 0,
            last_error=row["last_error"],
            last_fetch_at=row["last_fetch_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

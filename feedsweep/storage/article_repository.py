"""
Article Repository
==================

Repository pattern implementation for ArticleRecord storage with guid-based
deduplication and retention cleanup.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional, Iterable

from ..database.models import ArticleRecord
from ..database.connection import DatabaseConnection
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, DuplicateArticleError, ErrorCode
from .feed_repository import to_db_timestamp


class ArticleRepository:
    """Repository for ArticleRecord CRUD operations."""

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize article repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("article_repository")

    def get_by_guid(self, guid: str) -> Optional[ArticleRecord]:
        """Look up an article by its deduplication key.

        Raises:
            DatabaseError: If the lookup fails
        """
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM articles WHERE guid = ?", (guid,)
                ).fetchone()
                return self._row_to_article(row) if row else None

        except Exception as e:
            raise DatabaseError(
                f"Failed to look up article {guid}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def exists(self, guid: str) -> bool:
        """Check whether an article with this guid is stored.

        Raises:
            DatabaseError: If the lookup fails
        """
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT 1 FROM articles WHERE guid = ?", (guid,)
                ).fetchone()
                return row is not None

        except Exception as e:
            raise DatabaseError(
                f"Failed to check article {guid}: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def create_article(self, article: ArticleRecord) -> int:
        """Insert a new article.

        Returns:
            Created article ID

        Raises:
            DuplicateArticleError: If the guid is already stored
            DatabaseError: If creation fails for any other reason
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO articles (
                        feed_id, guid, title, link, description,
                        content_html, content_text, author, published_at,
                        is_read, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        article.feed_id, article.guid, article.title, article.link,
                        article.description, article.content_html, article.content_text,
                        article.author, to_db_timestamp(article.published_at),
                        article.is_read, to_db_timestamp(article.created_at),
                    )
                )
                conn.commit()

            self.logger.debug(f"Created article {cursor.lastrowid}: {article.guid}")
            return cursor.lastrowid

        except sqlite3.IntegrityError as e:
            if "articles.guid" in str(e):
                raise DuplicateArticleError(article.guid) from e
            raise DatabaseError(
                f"Failed to create article: {e}",
                error_code=ErrorCode.DATABASE_CONSTRAINT
            ) from e
        except Exception as e:
            raise DatabaseError(
                f"Failed to create article: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def get_article(self, article_id: int) -> Optional[ArticleRecord]:
        """Get article by ID."""
        try:
            with self.db.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM articles WHERE id = ?",
                    (article_id,)
                ).fetchone()
                return self._row_to_article(row) if row else None

        except Exception as e:
            self.logger.error(f"Failed to get article {article_id}: {e}")
            return None

    def get_articles(self, feed_id: Optional[int] = None, limit: int = 50,
                     unread_only: bool = False) -> List[ArticleRecord]:
        """List articles newest-published first.

        Args:
            feed_id: Restrict to one feed
            limit: Maximum number of articles to return
            unread_only: Skip articles already marked read
        """
        query = "SELECT * FROM articles WHERE 1 = 1"
        params: list = []

        if feed_id is not None:
            query += " AND feed_id = ?"
            params.append(feed_id)
        if unread_only:
            query += " AND is_read = 0"

        query += " ORDER BY published_at DESC, id DESC LIMIT ?"
        params.append(limit)

        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
                return [self._row_to_article(row) for row in rows]

        except Exception as e:
            self.logger.error(f"Failed to list articles: {e}")
            return []

    def count_for_feed(self, feed_id: int) -> int:
        try:
            with self.db.get_connection() as conn:
                return conn.execute(
                    "SELECT COUNT(*) FROM articles WHERE feed_id = ?", (feed_id,)
                ).fetchone()[0]

        except Exception as e:
            self.logger.error(f"Failed to count articles for feed {feed_id}: {e}")
            return 0

    def mark_read(self, article_ids: Iterable[int]) -> int:
        """Mark articles as read.

        Returns:
            Number of rows updated
        """
        ids = [int(article_id) for article_id in article_ids]
        if not ids:
            return 0

        placeholders = ",".join("?" for _ in ids)
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    f"UPDATE articles SET is_read = 1 WHERE id IN ({placeholders})",
                    ids,
                )
                conn.commit()
                return cursor.rowcount

        except Exception as e:
            raise DatabaseError(
                f"Failed to mark articles read: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def delete_published_before(self, cutoff: datetime) -> int:
        """Delete articles published before the cutoff.

        Returns:
            Number of articles deleted

        Raises:
            DatabaseError: If the delete fails
        """
        try:
            with self.db.get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM articles WHERE published_at < ?",
                    (to_db_timestamp(cutoff),),
                )
                conn.commit()

            self.logger.info(f"Deleted {cursor.rowcount} articles published before {cutoff.isoformat()}")
            return cursor.rowcount

        except Exception as e:
            raise DatabaseError(
                f"Failed to delete old articles: {e}",
                error_code=ErrorCode.DATABASE_ERROR,
            ) from e

    def _row_to_article(self, row) -> ArticleRecord:
        data = dict(row)
        data["is_read"] = bool(data.get("is_read"))
        return ArticleRecord(**data)

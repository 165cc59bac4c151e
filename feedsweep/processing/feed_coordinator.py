"""
Feed Fetch Coordinator
======================

Runs one feed through fetch, parse, per-item dedup/insert and the feed
health update, turning every failure into a FeedFetchResult.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..config.settings import FeedSweepSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import FeedSource, ensure_utc, utc_now
from ..ingestion.content_cleaner import build_article_record
from ..ingestion.document_fetcher import DocumentFetcher
from ..ingestion.feed_parser import RawItem, parse_feed_items
from ..monitoring.operation_log import OperationLog
from ..storage.article_repository import ArticleRepository
from ..storage.feed_repository import FeedRepository
from ..utils.exceptions import DatabaseError, DuplicateArticleError, error_message
from ..utils.logging import LoggerAdapter, get_ingestion_logger


@dataclass
class FeedFetchResult:
    """Outcome of fetching one feed."""

    success: bool
    new_count: int = 0
    total: int = 0
    failed_count: int = 0
    error: Optional[str] = None
    feed_id: Optional[int] = None
    feed_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "new_count": self.new_count, "total": self.total}
        return {"success": False, "error": self.error}


class FeedFetchCoordinator:
    """Fetches, parses and stores one feed at a time."""

    def __init__(self, db_connection: DatabaseConnection,
                 fetcher: Optional[DocumentFetcher] = None,
                 operation_log: Optional[OperationLog] = None,
                 settings: Optional[FeedSweepSettings] = None):
        """Initialize coordinator.

        Args:
            db_connection: Database connection manager
            fetcher: Document fetcher (default built from config)
            operation_log: Operation log receiving fetch events (optional)
            settings: Application settings (default global settings)
        """
        self.settings = settings or get_settings()
        self.feed_repo = FeedRepository(db_connection)
        self.article_repo = ArticleRepository(db_connection)
        self.fetcher = fetcher or DocumentFetcher(
            user_agent=self.settings.ingestion.user_agent,
            timeout=self.settings.ingestion.request_timeout,
            max_concurrent=self.settings.ingestion.max_concurrent_feeds,
        )
        self.operation_log = operation_log

    async def fetch_feed(self, feed: FeedSource, now: Optional[datetime] = None,
                         session: Optional[aiohttp.ClientSession] = None,
                         source: str = "manual") -> FeedFetchResult:
        """Fetch one feed and store its new articles.

        Never raises: transport and parse failures are recorded on the feed
        and returned as an unsuccessful result.

        Args:
            feed: Feed to fetch
            now: Ingestion time, used for last_fetch_at and missing publish dates
            session: Shared aiohttp session; a private one is opened when omitted
            source: Trigger label recorded in the operation log

        Returns:
            FeedFetchResult
        """
        now = ensure_utc(now) if now else utc_now()
        logger = get_ingestion_logger(feed_id=feed.id, feed_name=feed.name)

        try:
            document = await self._fetch_document(feed.url, session)
            items = parse_feed_items(document, feed_url=feed.url)
        except Exception as e:
            return self._handle_failure(feed, e, logger, source)

        new_count, failed_count = self._store_items(feed, items, now, logger)

        try:
            self.feed_repo.record_fetch_success(feed.id, now)
        except DatabaseError as e:
            logger.error(f"Could not record fetch success: {e}")

        logger.info(
            f"Fetched {feed.name}: {new_count} new of {len(items)} items"
            + (f", {failed_count} failed" if failed_count else "")
        )

        if new_count > 0 and self.operation_log is not None:
            self.operation_log.append("rss", "fetch", {
                "feed": feed.name,
                "new_count": new_count,
                "total": len(items),
                "source": source,
            })

        return FeedFetchResult(
            success=True,
            new_count=new_count,
            total=len(items),
            failed_count=failed_count,
            feed_id=feed.id,
            feed_name=feed.name,
        )

    async def _fetch_document(self, url: str, session: Optional[aiohttp.ClientSession]) -> str:
        if session is not None:
            return await self.fetcher.fetch(url, session)

        async with self.fetcher.get_session() as own_session:
            return await self.fetcher.fetch(url, own_session)

    def _store_items(self, feed: FeedSource, items: List[RawItem], now: datetime,
                     logger: LoggerAdapter) -> Tuple[int, int]:
        """Insert unseen items; returns (new_count, failed_count)."""
        ingestion = self.settings.ingestion
        new_count = 0
        failed_count = 0

        for item in items:
            guid = item.guid or item.link
            try:
                if self.article_repo.exists(guid):
                    continue

                article = build_article_record(
                    feed, item, now,
                    description_max_length=ingestion.description_max_length,
                    content_html_max_length=ingestion.content_html_max_length,
                    content_text_max_length=ingestion.content_text_max_length,
                )
                self.article_repo.create_article(article)
                new_count += 1

            except DuplicateArticleError:
                # Stored concurrently between the existence check and the insert
                logger.debug(f"Article already stored: {guid}")

            except Exception as e:
                failed_count += 1
                logger.warning(f"Failed to store item '{item.title[:80]}' ({guid}): {e}")

        return new_count, failed_count

    def _handle_failure(self, feed: FeedSource, exc: Exception, logger: LoggerAdapter,
                        source: str) -> FeedFetchResult:
        message = error_message(exc)
        threshold = self.settings.ingestion.deactivation_threshold

        logger.warning(f"Feed fetch failed for {feed.url}: {message}")

        try:
            self.feed_repo.record_fetch_failure(feed.id, message, threshold)
        except DatabaseError as e:
            logger.error(f"Could not record fetch failure: {e}")

        if feed.error_count + 1 >= threshold and feed.is_active:
            logger.warning(
                f"Feed deactivated after {feed.error_count + 1} consecutive failures"
            )

        if self.operation_log is not None:
            self.operation_log.append("error", "fetch", {
                "feed": feed.name,
                "error": message,
                "source": source,
            })

        return FeedFetchResult(
            success=False,
            error=message,
            feed_id=feed.id,
            feed_name=feed.name,
        )

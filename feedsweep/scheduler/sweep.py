"""
Scheduler Sweep
===============

One evaluation pass over all active feeds: feeds whose cron expression is
due at the sweep instant are handed to the fetch coordinator with bounded
concurrency over one shared HTTP session.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .cron import cron_matches
from ..config.settings import FeedSweepSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import FeedSource, ensure_utc, utc_now
from ..monitoring.operation_log import OperationLog
from ..processing.feed_coordinator import FeedFetchCoordinator, FeedFetchResult
from ..storage.article_repository import ArticleRepository
from ..storage.feed_repository import FeedRepository
from ..utils.exceptions import error_message
from ..utils.logging import get_logger_for_component, PerformanceLogger


@dataclass
class SweepResult:
    """Aggregate outcome of one sweep. Not persisted."""

    total: int = 0
    fetched: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)
    skipped: int = 0
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "total": self.total,
            "fetched": self.fetched,
            "skipped": self.skipped,
            "results": list(self.results),
        }
        if self.error:
            data["error"] = self.error
        return data


class SchedulerSweep:
    """Evaluates active feeds against the clock and fetches the due ones."""

    def __init__(self, db_connection: DatabaseConnection,
                 coordinator: Optional[FeedFetchCoordinator] = None,
                 operation_log: Optional[OperationLog] = None,
                 settings: Optional[FeedSweepSettings] = None):
        self.settings = settings or get_settings()
        self.operation_log = operation_log
        self.coordinator = coordinator or FeedFetchCoordinator(
            db_connection, operation_log=operation_log, settings=self.settings
        )
        self.feed_repo = FeedRepository(db_connection)
        self.article_repo = ArticleRepository(db_connection)
        self.logger = get_logger_for_component("sweep")

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Fetch every active feed whose cron expression is due at ``now``.

        Never raises; a failure to load the feed set is reported in
        SweepResult.error.

        Args:
            now: Sweep instant (default current UTC time)

        Returns:
            SweepResult
        """
        now = ensure_utc(now) if now else utc_now()
        guard_minutes = self.settings.scheduler.min_refetch_minutes

        return await self._run(
            now,
            select=lambda feed: (
                cron_matches(feed.cron_expression, now)
                and not self._recently_fetched(feed, now, guard_minutes)
            ),
            source="cron",
        )

    async def fetch_all(self, now: Optional[datetime] = None) -> SweepResult:
        """Fetch every active feed regardless of its schedule.

        Feeds fetched within the manual re-fetch window are still skipped.
        """
        now = ensure_utc(now) if now else utc_now()
        guard_minutes = self.settings.scheduler.manual_min_refetch_minutes

        return await self._run(
            now,
            select=lambda feed: not self._recently_fetched(feed, now, guard_minutes),
            source="manual",
        )

    def due_feeds(self, now: Optional[datetime] = None) -> List[FeedSource]:
        """List the active feeds a sweep at ``now`` would fetch.

        Raises:
            DatabaseError: If the feed set cannot be loaded
        """
        now = ensure_utc(now) if now else utc_now()
        guard_minutes = self.settings.scheduler.min_refetch_minutes
        return [
            feed for feed in self.feed_repo.get_active_feeds()
            if cron_matches(feed.cron_expression, now)
            and not self._recently_fetched(feed, now, guard_minutes)
        ]

    def cleanup_old_articles(self, days: Optional[int] = None,
                             now: Optional[datetime] = None) -> Dict[str, Any]:
        """Delete articles published more than ``days`` days before ``now``.

        Returns:
            {"success": True, "deleted": n} or {"success": False, "error": msg}
        """
        days = days if days is not None else self.settings.scheduler.article_retention_days
        now = ensure_utc(now) if now else utc_now()
        cutoff = now - timedelta(days=days)

        try:
            deleted = self.article_repo.delete_published_before(cutoff)
        except Exception as e:
            message = error_message(e)
            self.logger.error(f"Article cleanup failed: {message}")
            return {"success": False, "error": message}

        if deleted and self.operation_log is not None:
            self.operation_log.append("cleanup", "delete", {"deleted": deleted, "days": days})

        return {"success": True, "deleted": deleted}

    async def _run(self, now: datetime, select, source: str) -> SweepResult:
        result = SweepResult(started_at=now)

        with PerformanceLogger(self.logger, f"{source} sweep") as perf:
            try:
                feeds = self.feed_repo.get_active_feeds()
            except Exception as e:
                result.error = error_message(e)
                result.finished_at = utc_now()
                self.logger.error(f"Could not load active feeds: {result.error}")
                if self.operation_log is not None:
                    self.operation_log.append("error", "sweep", {"error": result.error})
                return result

            result.total = len(feeds)
            due = [feed for feed in feeds if select(feed)]
            result.skipped = result.total - len(due)

            try:
                outcomes = await self._fetch_feeds(due, now, source)
            except Exception as e:
                # Session setup failed before any feed was attempted
                result.error = error_message(e)
                self.logger.error(f"Sweep aborted: {result.error}")
                outcomes = []

            for feed, outcome in zip(due, outcomes):
                result.results.append({"name": feed.name, **outcome.to_dict()})
                if outcome.success:
                    result.fetched += 1

        result.finished_at = utc_now()
        self.logger.info(
            f"Sweep finished: {result.fetched}/{len(due)} due feeds fetched, "
            f"{result.skipped} skipped of {result.total} active"
            + (f" in {perf.duration:.2f}s" if perf.duration is not None else "")
        )
        return result

    async def _fetch_feeds(self, feeds: List[FeedSource], now: datetime,
                           source: str) -> List[FeedFetchResult]:
        """Fetch feeds concurrently; results are returned in feed order."""
        if not feeds:
            return []

        semaphore = asyncio.Semaphore(self.settings.ingestion.max_concurrent_feeds)

        async with self.coordinator.fetcher.get_session() as session:

            async def fetch_with_semaphore(feed: FeedSource) -> FeedFetchResult:
                async with semaphore:
                    return await self.coordinator.fetch_feed(
                        feed, now=now, session=session, source=source
                    )

            outcomes = await asyncio.gather(
                *(fetch_with_semaphore(feed) for feed in feeds),
                return_exceptions=True,
            )

        results = []
        for feed, outcome in zip(feeds, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(f"Unexpected error fetching {feed.name}: {outcome}")
                outcome = FeedFetchResult(
                    success=False,
                    error=error_message(outcome),
                    feed_id=feed.id,
                    feed_name=feed.name,
                )
            results.append(outcome)
        return results

    @staticmethod
    def _recently_fetched(feed: FeedSource, now: datetime, minutes: float) -> bool:
        """True when the last fetch lies less than ``minutes`` before ``now``."""
        if feed.last_fetch_at is None or minutes <= 0:
            return False
        elapsed = (now - ensure_utc(feed.last_fetch_at)).total_seconds()
        return 0 <= elapsed < minutes * 60

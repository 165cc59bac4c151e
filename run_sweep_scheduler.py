#!/usr/bin/env python3
"""
FeedSweep Sweep Scheduler Runner
================================

Main entry point for running scheduled feed sweeps. Triggers a sweep at
every interval boundary, runs the daily retention cleanup and shuts down
gracefully on SIGINT/SIGTERM.
"""

import sys
import asyncio
import argparse
import signal
from datetime import datetime
from pathlib import Path
from typing import Optional

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from feedsweep.config.settings import get_settings
from feedsweep.database.connection import get_db_manager
from feedsweep.database.models import utc_now
from feedsweep.database.schema import DatabaseSchema
from feedsweep.monitoring.operation_log import OperationLog
from feedsweep.scheduler.sweep import SchedulerSweep, SweepResult
from feedsweep.utils.logging import configure_application_logging, get_logger_for_component


class SweepSchedulerService:
    """
    Service wrapper for SchedulerSweep that handles continuous operation.
    """

    def __init__(self, sweeper: SchedulerSweep):
        self.sweeper = sweeper
        self.settings = sweeper.settings
        self.logger = get_logger_for_component("scheduler_service")
        self.running = True
        self._stop_event = asyncio.Event()
        self._last_cleanup_date = None

    def stop(self) -> None:
        self.running = False
        self._stop_event.set()

    def seconds_until_next_tick(self, now: datetime) -> float:
        """Seconds until the next interval boundary, aligned to the epoch."""
        interval = self.settings.scheduler.interval_seconds
        elapsed = now.timestamp() % interval
        return interval - elapsed

    async def run_service(self):
        """Run sweeps as a continuous service."""
        interval = self.settings.scheduler.interval_seconds
        self.logger.info(f"Starting sweep service, interval {interval}s")

        while self.running:
            try:
                delay = self.seconds_until_next_tick(utc_now())
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

                # Truncate to the minute so cron fields see the boundary instant
                now = utc_now().replace(second=0, microsecond=0)
                result = await self.sweeper.sweep(now)
                log_sweep_result(self.logger, result)

                self.maybe_cleanup(now)

            except Exception as e:
                self.logger.error(f"Service error: {e}", exc_info=True)
                await asyncio.sleep(5)

        self.logger.info("Sweep service stopped")

    def maybe_cleanup(self, now: datetime) -> None:
        """Run retention cleanup once per day at the configured UTC hour."""
        if now.hour != self.settings.scheduler.cleanup_hour:
            return
        if self._last_cleanup_date == now.date():
            return

        result = self.sweeper.cleanup_old_articles(now=now)
        if result['success']:
            self._last_cleanup_date = now.date()
            self.logger.info(f"Retention cleanup deleted {result['deleted']} articles")
        else:
            self.logger.error(f"Retention cleanup failed: {result['error']}")


def log_sweep_result(logger, result: SweepResult) -> None:
    if result.error:
        logger.error(f"Sweep failed: {result.error}")
        return
    for outcome in result.results:
        if not outcome['success']:
            logger.warning(f"Feed '{outcome['name']}' failed: {outcome['error']}")


def print_due_feeds(sweeper: SchedulerSweep, now: Optional[datetime]) -> int:
    feeds = sweeper.due_feeds(now)
    print(f"🕐 {len(feeds)} feed(s) due at {(now or utc_now()).isoformat()}")
    for feed in feeds:
        print(f"  - [{feed.id}] {feed.name} ({feed.cron_expression}) {feed.url}")
    return len(feeds)


async def main():
    """Main entry point for the scheduler service."""
    parser = argparse.ArgumentParser(description='FeedSweep Sweep Scheduler')
    parser.add_argument('--once', action='store_true',
                        help='Run a single sweep and exit (for cron/systemd timers)')
    parser.add_argument('--dry-run', action='store_true',
                        help='List the feeds that are due now without fetching')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    args = parser.parse_args()

    settings = get_settings()

    configure_application_logging(
        log_level="DEBUG" if args.debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path or None,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    logger = get_logger_for_component("scheduler_runner")

    logger.info("Starting FeedSweep Sweep Scheduler...")

    try:
        DatabaseSchema(settings.database.path).create_tables()
        db_manager = get_db_manager(settings.database.path, pool_size=settings.database.pool_size)
        operation_log = OperationLog(settings.operation_log.capacity)
        sweeper = SchedulerSweep(db_manager, operation_log=operation_log, settings=settings)

        if args.dry_run:
            print_due_feeds(sweeper, utc_now().replace(second=0, microsecond=0))

        elif args.once:
            print("🔄 Running one sweep...")
            result = await sweeper.sweep(utc_now().replace(second=0, microsecond=0))
            log_sweep_result(logger, result)
            print(f"📋 {result.fetched} fetched, {result.skipped} skipped, {result.total} active")
            for entry in operation_log.entries():
                print(f"  {entry.timestamp:%H:%M:%S} {entry.type}/{entry.action} {entry.details}")
            sys.exit(0 if result.success else 1)

        else:
            print("🕐 FeedSweep scheduler service starting...")
            print(f"📅 Sweeping every {settings.scheduler.interval_seconds}s, "
                  f"cleanup daily at {settings.scheduler.cleanup_hour:02d}:00 UTC")
            print("Press Ctrl+C to stop.")

            service = SweepSchedulerService(sweeper)
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, service.stop)
                except NotImplementedError:
                    # Windows event loops have no signal handler support
                    pass
            await service.run_service()

    except KeyboardInterrupt:
        print("\n👋 Scheduler stopped by user")
        logger.info("Scheduler stopped by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"❌ Failed to start scheduler: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())

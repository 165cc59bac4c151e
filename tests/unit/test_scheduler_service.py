"""
Tests for the sweep scheduler service
=====================================
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from feedsweep.scheduler.sweep import SweepResult
from run_sweep_scheduler import SweepSchedulerService, log_sweep_result, print_due_feeds


@pytest.fixture
def service(sweeper):
    return SweepSchedulerService(sweeper)


class TestSweepSchedulerService:
    """Test suite for SweepSchedulerService."""

    @pytest.mark.asyncio
    async def test_seconds_until_next_tick(self, service):
        assert service.seconds_until_next_tick(datetime(2024, 9, 6, 10, 0, 15, tzinfo=timezone.utc)) == 45
        assert service.seconds_until_next_tick(datetime(2024, 9, 6, 10, 0, 0, tzinfo=timezone.utc)) == 60

    @pytest.mark.asyncio
    async def test_cleanup_runs_once_per_day_at_configured_hour(self, service, settings):
        settings.scheduler.cleanup_hour = 3
        service.sweeper.cleanup_old_articles = MagicMock(return_value={"success": True, "deleted": 4})

        service.maybe_cleanup(datetime(2024, 9, 6, 2, 59, tzinfo=timezone.utc))
        service.maybe_cleanup(datetime(2024, 9, 6, 3, 0, tzinfo=timezone.utc))
        service.maybe_cleanup(datetime(2024, 9, 6, 3, 1, tzinfo=timezone.utc))
        service.maybe_cleanup(datetime(2024, 9, 7, 3, 0, tzinfo=timezone.utc))

        assert service.sweeper.cleanup_old_articles.call_count == 2

    @pytest.mark.asyncio
    async def test_failed_cleanup_is_retried(self, service, settings):
        settings.scheduler.cleanup_hour = 3
        service.sweeper.cleanup_old_articles = MagicMock(return_value={"success": False, "error": "locked"})

        service.maybe_cleanup(datetime(2024, 9, 6, 3, 0, tzinfo=timezone.utc))
        service.maybe_cleanup(datetime(2024, 9, 6, 3, 1, tzinfo=timezone.utc))

        assert service.sweeper.cleanup_old_articles.call_count == 2

    @pytest.mark.asyncio
    async def test_run_service_sweeps_at_minute_boundary_until_stopped(self, service):
        sweeps = []

        async def fake_sweep(now):
            sweeps.append(now)
            service.stop()
            return SweepResult()

        service.seconds_until_next_tick = lambda now: 0
        service.sweeper.sweep = AsyncMock(side_effect=fake_sweep)

        await service.run_service()

        assert len(sweeps) == 1
        assert sweeps[0].second == 0
        assert sweeps[0].microsecond == 0

    @pytest.mark.asyncio
    async def test_stop_before_tick_skips_sweep(self, service):
        service.sweeper.sweep = AsyncMock()
        service.stop()

        await service.run_service()

        service.sweeper.sweep.assert_not_called()


def test_log_sweep_result_reports_failures():
    logger = MagicMock()
    log_sweep_result(logger, SweepResult(results=[
        {"name": "Good", "success": True, "new_count": 1, "total": 1},
        {"name": "Bad", "success": False, "error": "HTTP 404: Not Found"},
    ]))

    logger.warning.assert_called_once_with("Feed 'Bad' failed: HTTP 404: Not Found")
    logger.error.assert_not_called()


def test_print_due_feeds(sweeper, make_feed, capsys):
    make_feed(name="Hourly", cron_expression="0 * * * *")

    count = print_due_feeds(sweeper, datetime(2024, 9, 6, 10, 0, tzinfo=timezone.utc))

    assert count == 1
    assert "Hourly" in capsys.readouterr().out

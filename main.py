#!/usr/bin/env python3
"""
FeedSweep - Scheduled Feed Ingestion
====================================

Main application entry point with CLI interface for feed management and
manual ingestion runs.

Usage:
    python main.py --help                         # Show all commands
    python main.py check-config                   # Validate configuration
    python main.py init-db                        # Initialize database
    python main.py add-feed NAME URL              # Subscribe and fetch once
    python main.py list-feeds                     # Show feed health
    python main.py sweep                          # Run one scheduled sweep now
    python main.py fetch-all                      # Fetch every active feed
"""

import sys
import asyncio
import logging
from pathlib import Path
from typing import Optional

import click
from dateutil.parser import isoparse
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from feedsweep.config.settings import get_settings
from feedsweep.database.schema import DatabaseSchema
from feedsweep.database.connection import get_db_manager
from feedsweep.database.models import FeedSource, DEFAULT_CRON_EXPRESSION, ensure_utc
from feedsweep.monitoring.operation_log import OperationLog
from feedsweep.processing.feed_coordinator import FeedFetchCoordinator
from feedsweep.scheduler.cron import validate_cron_expression
from feedsweep.scheduler.sweep import SchedulerSweep, SweepResult
from feedsweep.storage.article_repository import ArticleRepository
from feedsweep.storage.feed_repository import FeedRepository
from feedsweep.utils.logging import configure_application_logging
from feedsweep.utils.exceptions import FeedSweepError, ValidationError
from feedsweep.utils.validators import URLValidator

console = Console()
logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """FeedSweep - cron-scheduled RSS/Atom ingestion."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _bootstrap(ctx):
    """Load settings, configure logging and make sure the schema exists."""
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path or None,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )

    DatabaseSchema(settings.database.path).create_tables()
    db_manager = get_db_manager(settings.database.path, pool_size=settings.database.pool_size)

    if 'operation_log' not in ctx.obj:
        ctx.obj['operation_log'] = OperationLog(settings.operation_log.capacity)

    return settings, db_manager


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking FeedSweep Configuration[/bold blue]")

    try:
        settings = get_settings()

        table = Table(title="Configuration Status")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Details")

        checks = [
            ("Database", _check_database_config),
            ("Logging", _check_logging_config),
            ("Ingestion", _check_ingestion_config),
            ("Scheduler", _check_scheduler_config),
        ]

        all_passed = True
        for name, check_func in checks:
            status, details = check_func(settings)
            table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
            all_passed = all_passed and status

        console.print(table)

        if all_passed:
            console.print("[bold green]✅ All configuration checks passed![/bold green]")
        else:
            console.print("[bold red]❌ Configuration validation failed[/bold red]")
            sys.exit(1)

    except FeedSweepError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
def init_db():
    """Initialize database schema."""
    console.print("[bold blue]🗄️ Initializing FeedSweep Database[/bold blue]")

    settings = get_settings()
    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    if not schema.verify_schema():
        console.print("[bold red]❌ Database schema verification failed[/bold red]")
        sys.exit(1)

    console.print(f"[bold green]✅ Database ready at {settings.database.path}[/bold green]")


@cli.command()
@click.argument('name')
@click.argument('url')
@click.option('--cron', 'cron_expression', default=DEFAULT_CRON_EXPRESSION, show_default=True,
              help='Five-field fetch schedule (UTC)')
@click.option('--category', default='tech', show_default=True, help='Feed category')
@click.option('--no-fetch', is_flag=True, help='Do not fetch the feed right away')
@click.pass_context
def add_feed(ctx, name, url, cron_expression, category, no_fetch):
    """Subscribe to a feed and fetch it once."""
    settings, db_manager = _bootstrap(ctx)

    try:
        url = URLValidator.validate_feed_url(url)
        cron_expression = validate_cron_expression(cron_expression)
    except ValidationError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)

    if not URLValidator.is_likely_feed_url(url):
        console.print(f"[yellow]⚠️ {url} does not look like a feed URL, adding anyway[/yellow]")

    feed_repo = FeedRepository(db_manager)
    feed_id = feed_repo.create_feed(FeedSource(
        name=name, url=url, category=category, cron_expression=cron_expression,
    ))
    console.print(f"[green]✅ Added feed {feed_id}: {name} ({url})[/green]")

    if no_fetch:
        return

    feed = feed_repo.get_feed(feed_id)
    coordinator = FeedFetchCoordinator(
        db_manager, operation_log=ctx.obj['operation_log'], settings=settings
    )
    result = asyncio.run(coordinator.fetch_feed(feed, source="add"))
    _print_fetch_result(name, result)


@cli.command()
@click.pass_context
def list_feeds(ctx):
    """Show every feed with its schedule and health."""
    _, db_manager = _bootstrap(ctx)
    feeds = FeedRepository(db_manager).get_all_feeds()

    if not feeds:
        console.print("[yellow]⚠️ No feeds found in database[/yellow]")
        return

    feeds_table = Table(title="Feeds")
    feeds_table.add_column("ID", style="dim")
    feeds_table.add_column("Status", style="green")
    feeds_table.add_column("Name", style="cyan")
    feeds_table.add_column("URL", style="blue")
    feeds_table.add_column("Cron", style="magenta")
    feeds_table.add_column("Errors", style="red")
    feeds_table.add_column("Last Fetch")
    feeds_table.add_column("Last Error")

    for feed in feeds:
        status = "🟢" if feed.is_healthy() else "🟡" if feed.is_active else "🔴"
        url = feed.url if len(feed.url) <= 40 else feed.url[:37] + "..."
        feeds_table.add_row(
            str(feed.id),
            status,
            feed.name[:30] + "..." if len(feed.name) > 30 else feed.name,
            url,
            feed.cron_expression,
            str(feed.error_count),
            feed.last_fetch_at.strftime("%Y-%m-%d %H:%M") if feed.last_fetch_at else "Never",
            (feed.last_error or "")[:40],
        )

    console.print(feeds_table)


@cli.command()
@click.argument('feed_id', type=int)
@click.option('--name', help='New display name')
@click.option('--url', help='New feed URL')
@click.option('--cron', 'cron_expression', help='New five-field schedule')
@click.option('--category', help='New category')
@click.option('--active/--inactive', default=None, help='Re-enable or pause the feed')
@click.pass_context
def update_feed(ctx, feed_id, name, url, cron_expression, category, active):
    """Change feed fields; re-activating also clears the failure streak."""
    _, db_manager = _bootstrap(ctx)

    fields = {}
    try:
        if name:
            fields['name'] = name
        if url:
            fields['url'] = URLValidator.validate_feed_url(url)
        if cron_expression:
            fields['cron_expression'] = validate_cron_expression(cron_expression)
    except ValidationError as e:
        console.print(f"[bold red]❌ {e.user_message}[/bold red]")
        sys.exit(1)

    if category:
        fields['category'] = category
    if active is not None:
        fields['is_active'] = active
        if active:
            fields['error_count'] = 0
            fields['last_error'] = None

    if not fields:
        console.print("[yellow]⚠️ Nothing to update[/yellow]")
        return

    if FeedRepository(db_manager).update_feed(feed_id, **fields):
        console.print(f"[green]✅ Updated feed {feed_id}: {', '.join(fields)}[/green]")
    else:
        console.print(f"[bold red]❌ Feed {feed_id} not found[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('feed_id', type=int)
@click.pass_context
def delete_feed(ctx, feed_id):
    """Delete a feed and its articles."""
    _, db_manager = _bootstrap(ctx)

    if FeedRepository(db_manager).delete_feed(feed_id):
        console.print(f"[green]✅ Deleted feed {feed_id}[/green]")
    else:
        console.print(f"[bold red]❌ Feed {feed_id} not found[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('feed_id', type=int)
@click.pass_context
def fetch_feed(ctx, feed_id):
    """Fetch one feed now, ignoring its schedule."""
    settings, db_manager = _bootstrap(ctx)

    feed = FeedRepository(db_manager).get_feed(feed_id)
    if feed is None:
        console.print(f"[bold red]❌ Feed {feed_id} not found[/bold red]")
        sys.exit(1)

    console.print(f"[bold blue]📡 Fetching {feed.name}[/bold blue]")
    coordinator = FeedFetchCoordinator(
        db_manager, operation_log=ctx.obj['operation_log'], settings=settings
    )
    result = asyncio.run(coordinator.fetch_feed(feed, source="manual"))
    _print_fetch_result(feed.name, result)
    _print_operation_log(ctx.obj['operation_log'])


@cli.command()
@click.option('--at', 'at', help='Sweep instant as ISO-8601 (default: now, UTC)')
@click.pass_context
def sweep(ctx, at):
    """Run one scheduled sweep over the active feeds."""
    settings, db_manager = _bootstrap(ctx)

    now = None
    if at:
        try:
            now = ensure_utc(isoparse(at))
        except ValueError as e:
            console.print(f"[bold red]❌ Invalid --at value: {e}[/bold red]")
            sys.exit(1)

    sweeper = SchedulerSweep(db_manager, operation_log=ctx.obj['operation_log'], settings=settings)
    result = asyncio.run(sweeper.sweep(now))
    _print_sweep_result("Sweep", result)
    _print_operation_log(ctx.obj['operation_log'])

    if result.error:
        sys.exit(1)


@cli.command()
@click.pass_context
def fetch_all(ctx):
    """Fetch every active feed regardless of schedule."""
    settings, db_manager = _bootstrap(ctx)

    sweeper = SchedulerSweep(db_manager, operation_log=ctx.obj['operation_log'], settings=settings)
    result = asyncio.run(sweeper.fetch_all())
    _print_sweep_result("Fetch all", result)
    _print_operation_log(ctx.obj['operation_log'])

    if result.error:
        sys.exit(1)


@cli.command()
@click.option('--feed-id', type=int, help='Only show articles from this feed')
@click.option('--limit', default=20, show_default=True, help='Maximum articles to show')
@click.pass_context
def articles(ctx, feed_id, limit):
    """List recently published articles."""
    _, db_manager = _bootstrap(ctx)
    rows = ArticleRepository(db_manager).get_articles(feed_id=feed_id, limit=limit)

    if not rows:
        console.print("[yellow]⚠️ No articles found[/yellow]")
        return

    table = Table(title="Articles")
    table.add_column("Published", style="dim")
    table.add_column("Feed", style="magenta")
    table.add_column("Title", style="cyan")
    table.add_column("Link", style="blue")

    for article in rows:
        table.add_row(
            article.published_at.strftime("%Y-%m-%d %H:%M"),
            str(article.feed_id),
            article.title[:60],
            article.link[:50],
        )

    console.print(table)


@cli.command()
@click.option('--days', type=int, help='Retention in days (default from config)')
@click.pass_context
def cleanup(ctx, days):
    """Delete articles published before the retention window."""
    settings, db_manager = _bootstrap(ctx)

    sweeper = SchedulerSweep(db_manager, operation_log=ctx.obj['operation_log'], settings=settings)
    result = sweeper.cleanup_old_articles(days=days)

    if result['success']:
        console.print(f"[green]🧹 Deleted {result['deleted']} old articles[/green]")
    else:
        console.print(f"[bold red]❌ Cleanup failed: {result['error']}[/bold red]")
        sys.exit(1)


def _print_fetch_result(name: str, result) -> None:
    if result.success:
        console.print(
            f"[green]✅ {name}: {result.new_count} new of {result.total} items[/green]"
            + (f" [yellow]({result.failed_count} failed)[/yellow]" if result.failed_count else "")
        )
    else:
        console.print(f"[bold red]❌ {name}: {result.error}[/bold red]")


def _print_sweep_result(title: str, result: SweepResult) -> None:
    if result.error:
        console.print(f"[bold red]❌ {title} failed: {result.error}[/bold red]")
        return

    console.print(
        f"[bold blue]📋 {title}: {result.fetched} fetched, {result.skipped} skipped, "
        f"{result.total} active[/bold blue]"
    )

    if not result.results:
        return

    table = Table()
    table.add_column("Feed", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    for outcome in result.results:
        if outcome['success']:
            table.add_row(outcome['name'], "✅", f"{outcome['new_count']} new / {outcome['total']}")
        else:
            table.add_row(outcome['name'], "❌", outcome['error'])

    console.print(table)


def _print_operation_log(operation_log: Optional[OperationLog]) -> None:
    if not operation_log or not len(operation_log):
        return

    table = Table(title="Operation Log")
    table.add_column("Time", style="dim")
    table.add_column("Type", style="magenta")
    table.add_column("Action")
    table.add_column("Details")

    for entry in operation_log.entries():
        details = ", ".join(f"{key}={value}" for key, value in entry.details.items())
        table.add_row(entry.timestamp.strftime("%H:%M:%S"), entry.type, entry.action, details)

    console.print(table)


# Helper functions for configuration checks
def _check_database_config(settings) -> tuple:
    """Check database configuration."""
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple:
    """Check logging configuration."""
    try:
        if settings.logging.file_path:
            log_path = Path(settings.logging.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_ingestion_config(settings) -> tuple:
    ingestion = settings.ingestion
    return True, (
        f"Timeout: {ingestion.request_timeout}s, Concurrency: {ingestion.max_concurrent_feeds}, "
        f"Deactivate after: {ingestion.deactivation_threshold} failures"
    )


def _check_scheduler_config(settings) -> tuple:
    scheduler = settings.scheduler
    return True, (
        f"Interval: {scheduler.interval_seconds}s, Retention: {scheduler.article_retention_days} days"
    )


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 FeedSweep interrupted by user[/yellow]")
        sys.exit(130)

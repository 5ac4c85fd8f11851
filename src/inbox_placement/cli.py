"""Command-line interface for Inbox Placement."""

import asyncio
import contextlib
import json
import math
import signal
import sys
from collections.abc import Coroutine
from datetime import timedelta
from types import FrameType
from typing import Any, TypeVar

import click
import structlog

from inbox_placement.config import MonitoringConfig, Settings, get_settings
from inbox_placement.core import configure_logging
from inbox_placement.exceptions import PersistenceError
from inbox_placement.models import TestRecord, utcnow
from inbox_placement.placement.scoring import ScoringPolicy
from inbox_placement.services import RecoverySweep, SweepScheduler, TestEngine
from inbox_placement.storage import JsonFileTestStore
from inbox_placement.transport import SMTPNotifier

logger = structlog.get_logger(__name__)

T = TypeVar("T")

STATUS_ICON = {
    "delivered": "✅",
    "not_delivered": "⚠️",
    "error": "❌",
    "pending": "…",
}


def _load_settings() -> Settings:
    try:
        return get_settings()
    except Exception as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except PersistenceError as e:
        click.echo(f"Storage error: {e.message}", err=True)
        sys.exit(1)


def build_store(settings: Settings) -> JsonFileTestStore:
    policy = ScoringPolicy(
        spam_penalty=settings.spam_penalty, error_penalty=settings.error_penalty
    )
    return JsonFileTestStore(settings.data_path, policy=policy)


def build_engine(settings: Settings, store: JsonFileTestStore) -> TestEngine:
    return TestEngine(
        store,
        MonitoringConfig.from_settings(settings),
        notifier=SMTPNotifier(settings),
        frontend_url=settings.frontend_url,
    )


def _echo_record(record: TestRecord) -> None:
    click.echo(f"\nTest {record.test_id} [{record.status.value.upper()}]")
    click.echo(f"   Code: {record.test_code}")
    click.echo(f"   Score: {record.overall_score}%")
    click.echo(
        f"   Inbox: {record.inbox_count}  Spam: {record.spam_count}  "
        f"Delivered: {record.delivered_count}/{len(record.results)}"
    )
    for result in record.results:
        icon = STATUS_ICON.get(result.status.value, "?")
        line = f"   {icon} {result.email_provider}: {result.email_address} - {result.status.value}"
        if result.status.value == "delivered":
            line += f" ({result.folder.value})"
        if result.error:
            line += f" [{result.error}]"
        click.echo(line)
    if record.shareable_link:
        click.echo(f"   Report: {record.shareable_link}")


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.option("--json-logs/--no-json-logs", default=False, help="JSON log format")
@click.pass_context
def main(ctx: click.Context, debug: bool, json_logs: bool) -> None:
    """Inbox Placement - email deliverability testing across providers."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["json_logs"] = json_logs
    configure_logging(json_format=json_logs, debug=debug)


@main.command()
@click.option("--email", "user_email", required=True, help="Requester email address")
@click.option("--name", "user_name", default=None, help="Requester name")
def create(user_email: str, user_name: str | None) -> None:
    """Create a test and print the code to embed in the probe email."""
    settings = _load_settings()

    async def _create() -> TestRecord:
        store = build_store(settings)
        await store.ensure_directory()
        return await build_engine(settings, store).create_test(user_email, user_name)

    try:
        record = _run(_create())
    except ValueError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    click.echo(f"Test ID:   {record.test_id}")
    click.echo(f"Test code: {record.test_code}")
    click.echo("Send your email to:")
    for result in record.results:
        click.echo(f"   {result.email_provider}: {result.email_address}")


@main.command()
@click.argument("test_id")
def check(test_id: str) -> None:
    """Run a check pass for TEST_ID now and print the result."""
    settings = _load_settings()

    async def _check() -> TestRecord | None:
        store = build_store(settings)
        return await build_engine(settings, store).run_check(test_id)

    record = _run(_check())
    if record is None:
        click.echo(f"Test {test_id} not found", err=True)
        sys.exit(1)
    _echo_record(record)
    if record.status.value == "failed":
        sys.exit(2)


@main.command()
@click.argument("test_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw record")
def status(test_id: str, as_json: bool) -> None:
    """Show the stored state of TEST_ID."""
    settings = _load_settings()
    record = _run(build_store(settings).find_by_test_id(test_id))
    if record is None:
        click.echo(f"Test {test_id} not found", err=True)
        sys.exit(1)
    if as_json:
        click.echo(json.dumps(record.to_dict(), indent=2))
    else:
        _echo_record(record)


@main.command()
@click.argument("email")
@click.option("--page", default=1, type=click.IntRange(min=1), help="Page number")
@click.option("--limit", default=10, type=click.IntRange(1, 100), help="Tests per page")
@click.option("--json", "as_json", is_flag=True, help="Print the raw records")
def history(email: str, page: int, limit: int, as_json: bool) -> None:
    """List the tests created by EMAIL, newest first."""
    settings = _load_settings()
    offset = (page - 1) * limit
    records, total = _run(build_store(settings).find_by_user_email(email, limit, offset))
    pages = math.ceil(total / limit)

    if as_json:
        payload = {
            "tests": [r.to_dict() for r in records],
            "pagination": {"page": page, "limit": limit, "total": total, "pages": pages},
        }
        click.echo(json.dumps(payload, indent=2))
        return

    if total == 0:
        click.echo(f"No tests found for {email}")
        return
    for record in records:
        click.echo(
            f"{record.test_id}  {record.test_code}  {record.status.value:<10}  "
            f"{record.overall_score:>3}%  {record.created_at:%Y-%m-%d %H:%M}"
        )
    click.echo(f"Page {page} of {pages} ({total} tests)")


@main.command()
@click.option("--once", is_flag=True, help="Run a single sweep pass and exit")
def sweep(once: bool) -> None:
    """Run the recovery sweep service."""
    settings = _load_settings()
    store = build_store(settings)
    engine = build_engine(settings, store)
    recovery = RecoverySweep.from_settings(settings, store, engine)
    scheduler = SweepScheduler(settings, recovery, store)

    if once:
        report = _run(scheduler.run_now())
        click.echo(
            f"Reset {len(report.reset)}, processed {len(report.processed)}, "
            f"failed {len(report.failed)}"
        )
        return

    logger.info("starting_sweep_service")

    def handle_signal(signum: int, frame: FrameType | None) -> None:
        logger.info("signal_received", signal=signum)
        scheduler.request_shutdown()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    async def _serve() -> None:
        await store.ensure_directory()
        try:
            await scheduler.run()
        finally:
            await engine.drain()

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve())


@main.command()
def purge() -> None:
    """Delete tests older than the retention window."""
    settings = _load_settings()
    cutoff = utcnow() - timedelta(hours=settings.retention_hours)
    purged = _run(build_store(settings).purge_expired(cutoff))
    click.echo(f"Purged {purged} expired tests.")


if __name__ == "__main__":
    main()

"""Entry point for relaywatch."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

import uvicorn
import yaml
from rich.console import Console
from rich.panel import Panel

from relaywatch.config import settings
from relaywatch.health.aggregator import overall_status
from relaywatch.health.executor import HealthCheckExecutor
from relaywatch.health.registry import CheckRegistry
from relaywatch.replication.bridge import EventReplicationBridge
from relaywatch.replication.models import Event, EventType
from relaywatch.replication.store import SqliteContentStore
from relaywatch.reporting import render_outcomes, render_results

console = Console()


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel("Starting relaywatch API server", style="bold green"))
    uvicorn.run(
        "relaywatch.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def run_checks(tags: list[str], checks_file: str) -> int:
    """Run the registered checks once and print them ranked."""
    registry = CheckRegistry()
    registry.load(checks_file)
    executor = HealthCheckExecutor(
        registry, timeout_ms=settings.check_timeout_ms, max_workers=settings.check_workers,
    )
    try:
        with console.status("[bold green]Running health checks..."):
            results = executor.execute(tags=tags)
    finally:
        executor.close()
    render_results(results, console)
    return 0 if overall_status(results).is_ok else 1


def _coerce_date(value: Any) -> datetime:
    """YAML yields datetime, date or str; a missing date means now. Naive values are UTC."""
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    elif not isinstance(value, datetime):
        if not isinstance(value, date):
            raise ValueError(f"Unsupported event date: {value!r}")
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _event_from_entry(entry: dict[str, Any]) -> Event:
    return Event(
        path=entry["path"],
        date=_coerce_date(entry.get("date")),
        type=int(entry.get("type", EventType.NODE_ADDED)),
        user_id=entry.get("user_id", ""),
        identifier=entry.get("identifier"),
        user_data=entry.get("user_data"),
        info=entry.get("info") or {},
    )


def run_replay(events_file: str) -> int:
    """Push events from a YAML file through the replication bridge."""
    raw = yaml.safe_load(Path(events_file).read_text(encoding="utf-8")) or {}
    events = [_event_from_entry(e) for e in raw.get("events", [])]

    store = SqliteContentStore(settings.store_path)
    bridge = EventReplicationBridge(store, nuggets_path=settings.nuggets_path)
    bridge.enable()
    try:
        outcomes = bridge.process_events(events)
    finally:
        bridge.disable()
    render_outcomes(outcomes, console)
    return 0 if all(o.persisted for o in outcomes) else 1


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="relaywatch — health ranking and event replication")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")

    check_parser = sub.add_parser("check", help="Run health checks once")
    check_parser.add_argument("--tags", default="", help="Comma-separated tags, '-tag' excludes")
    check_parser.add_argument("--checks-file", default=settings.checks_file)

    replay_parser = sub.add_parser("replay", help="Persist events from a YAML file")
    replay_parser.add_argument("events_file", help="YAML file with an 'events' list")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "check":
        tags = [t.strip() for t in args.tags.split(",") if t.strip()]
        sys.exit(run_checks(tags, args.checks_file))
    elif args.command == "replay":
        sys.exit(run_replay(args.events_file))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

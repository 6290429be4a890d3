"""Tests for console reporting and the CLI commands."""

from __future__ import annotations

import textwrap
from datetime import datetime, timezone
from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from relaywatch import main as cli
from relaywatch.health.result import CheckResult, ExecutionResult, Status
from relaywatch.replication.store import SqliteContentStore
from relaywatch.reporting import render_outcomes, render_results, results_table


def _console() -> Console:
    return Console(file=StringIO(), width=120, color_system=None)


class TestReporting:
    def test_table_ranks_results(self) -> None:
        table = results_table([
            ExecutionResult(name="Cache", result=CheckResult(Status.OK, "up")),
            ExecutionResult(name="DB", result=CheckResult(Status.CRITICAL, "down")),
        ])
        assert table.title == "Health: CRITICAL"
        assert table.row_count == 2

    def test_render_results(self) -> None:
        console = _console()
        render_results([ExecutionResult(name="DB", result=CheckResult(Status.WARN, "slow"))], console)
        out = console.file.getvalue()
        assert "DB" in out
        assert "WARN" in out
        assert "slow" in out


@pytest.fixture
def cli_settings(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(cli.settings, "store_path", str(tmp_path / "content.db"))
    monkeypatch.setattr(cli.settings, "nuggets_path", "/var/nuggets")
    monkeypatch.setattr(cli, "console", _console())
    return cli.settings


class TestReplayCommand:
    def test_replay_persists_events(self, tmp_path: Path, cli_settings) -> None:
        events = tmp_path / "events.yaml"
        events.write_text(textwrap.dedent("""
            events:
              - identifier: evt-1
                path: /content/a
                date: 2024-05-01T12:30:00Z
                type: 1
                user_id: admin
                info: {size: 12}
              - path: /content/b
                user_id: editor
        """), encoding="utf-8")

        assert cli.run_replay(str(events)) == 0

        store = SqliteContentStore(cli_settings.store_path)
        try:
            assert len(store.children("/var/nuggets")) == 2
            assert store.get_fields("/var/nuggets/evt-1")["info.size"] == "12"
        finally:
            store.close()
        assert "PERSISTED" in cli.console.file.getvalue()

    def test_replay_accepts_plain_dates(self, tmp_path: Path, cli_settings) -> None:
        events = tmp_path / "events.yaml"
        events.write_text(textwrap.dedent("""
            events:
              - identifier: day
                path: /content/a
                user_id: u
                date: 2024-05-01
              - identifier: naive
                path: /content/b
                user_id: u
                date: 2024-05-01 08:15:00
        """), encoding="utf-8")

        assert cli.run_replay(str(events)) == 0

        store = SqliteContentStore(cli_settings.store_path)
        try:
            day = store.get_fields("/var/nuggets/day")["date"]
            naive = store.get_fields("/var/nuggets/naive")["date"]
        finally:
            store.close()
        assert day == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert naive == datetime(2024, 5, 1, 8, 15, tzinfo=timezone.utc)

    def test_replay_reports_failures(self, tmp_path: Path, cli_settings) -> None:
        events = tmp_path / "events.yaml"
        events.write_text(textwrap.dedent("""
            events:
              - {identifier: dup, path: /a, user_id: u}
              - {identifier: dup, path: /b, user_id: u}
        """), encoding="utf-8")
        assert cli.run_replay(str(events)) == 1
        assert "FAILED" in cli.console.file.getvalue()


class TestCheckCommand:
    def test_exit_code_reflects_health(self, tmp_path: Path, cli_settings, monkeypatch) -> None:
        checks = tmp_path / "checks.yaml"
        checks.write_text("checks: []\n", encoding="utf-8")
        assert cli.run_checks([], str(checks)) == 0

    def test_unhealthy_exit_code(self, tmp_path: Path, cli_settings, monkeypatch) -> None:
        checks = tmp_path / "checks.yaml"
        checks.write_text(textwrap.dedent("""
            checks:
              - {name: Local, type: tcp, hostname: localhost, port: 1}
        """), encoding="utf-8")
        monkeypatch.setattr(
            "relaywatch.health.checks.TcpCheck.run",
            lambda self: CheckResult(Status.CRITICAL, "refused"),
        )
        assert cli.run_checks([], str(checks)) == 1
        assert "Local" in cli.console.file.getvalue()

"""Console reporting for ranked health results and bridge outcomes."""

from __future__ import annotations

from collections.abc import Iterable

from rich.console import Console
from rich.table import Table

from .health.aggregator import aggregate, overall_status
from .health.result import ExecutionResult, Status
from .replication.bridge import BridgeOutcome

STATUS_STYLES = {
    Status.OK: "green",
    Status.WARN: "yellow",
    Status.CRITICAL: "bold red",
    Status.HEALTH_CHECK_ERROR: "bold magenta",
}


def results_table(results: Iterable[ExecutionResult]) -> Table:
    ranked = aggregate(results)
    table = Table(title=f"Health: {overall_status(ranked).value}")
    table.add_column("Status")
    table.add_column("Check")
    table.add_column("Tags", style="dim")
    table.add_column("Elapsed", justify="right")
    table.add_column("Message")

    for r in ranked:
        style = STATUS_STYLES[r.status]
        table.add_row(
            f"[{style}]{r.status.value}[/{style}]",
            r.name,
            ", ".join(r.tags),
            f"{r.elapsed_ms}ms",
            r.message,
        )
    return table


def render_results(results: Iterable[ExecutionResult], console: Console | None = None) -> None:
    (console or Console()).print(results_table(results))


def render_outcomes(outcomes: Iterable[BridgeOutcome], console: Console | None = None) -> None:
    table = Table(title="Replication")
    table.add_column("State")
    table.add_column("Record")
    table.add_column("Detail")
    for o in outcomes:
        if o.persisted:
            table.add_row("[green]PERSISTED[/green]", o.record_path or "", o.request.action.value)
        else:
            table.add_row("[red]FAILED[/red]", o.record_path or "", o.message)
    (console or Console()).print(table)

"""Result aggregation — ranks execution results worst-first.

Pure functions: no state survives between calls and nothing here raises for
check-level failures, those are already error results by the time they
arrive.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .result import ExecutionResult, Status


def aggregate(results: Iterable[ExecutionResult]) -> list[ExecutionResult]:
    """Return results ranked by severity (worst first), then by name."""
    return sorted(results, key=ExecutionResult.sort_key)


def overall_status(results: Iterable[ExecutionResult]) -> Status:
    """Worst status across results; OK when there are none."""
    return Status.worst(r.status for r in results)


def summarize(results: Iterable[ExecutionResult]) -> dict[str, Any]:
    """Ranked, JSON-ready view used by the reporters."""
    ranked = aggregate(results)
    counts = {s.value: 0 for s in Status}
    for r in ranked:
        counts[r.status.value] += 1
    return {
        "status": overall_status(ranked).value,
        "counts": counts,
        "results": [r.to_dict() for r in ranked],
    }

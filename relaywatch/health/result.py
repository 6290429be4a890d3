"""Health check result models.

A check produces a CheckResult (status + message). The executor wraps it in
an ExecutionResult together with the identifying metadata of the registered
check and its timing. ExecutionResults are immutable and rank worst-first.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ── Status ───────────────────────────────────────────────────────────────────


class Status(str, Enum):
    OK = "OK"
    WARN = "WARN"
    CRITICAL = "CRITICAL"
    HEALTH_CHECK_ERROR = "HEALTH_CHECK_ERROR"

    @property
    def severity(self) -> int:
        """Explicit rank, independent of declaration order."""
        return _SEVERITY[self]

    @property
    def is_ok(self) -> bool:
        return self is Status.OK

    @classmethod
    def worst(cls, statuses: Iterable[Status]) -> Status:
        return max(statuses, key=lambda s: s.severity, default=cls.OK)


_SEVERITY = {
    Status.OK: 0,
    Status.WARN: 1,
    Status.CRITICAL: 2,
    Status.HEALTH_CHECK_ERROR: 3,
}


# ── Results ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CheckResult:
    """Raw outcome reported by a check provider."""

    status: Status
    message: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.status, Status):
            try:
                object.__setattr__(self, "status", Status(self.status))
            except ValueError:
                raise ValueError(f"Invalid check status: {self.status!r}") from None
        if self.message is None:
            object.__setattr__(self, "message", "")


@dataclass(frozen=True)
class HealthCheckDescriptor:
    """Identifying metadata of a registered check."""

    name: str
    tags: tuple[str, ...] = ()
    service_id: int = 0


def collation_key(name: str) -> str:
    """Accent- and case-insensitive key: 'Émile' sorts with 'Emile', before 'Zed'."""
    decomposed = unicodedata.normalize("NFKD", name)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, eq=True)
class ExecutionResult:
    """Result of a single health check execution.

    Natural order: failed results sort before ok results; equal statuses
    sort by name (ignoring accents and case first, then exact), then by
    service id.
    """

    name: str
    result: CheckResult
    tags: tuple[str, ...] = ()
    finished_at: datetime = field(default_factory=_utcnow)
    elapsed_ms: int = 0
    service_id: int = 0

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("ExecutionResult requires a check name")
        if not isinstance(self.result, CheckResult):
            raise ValueError(f"Expected CheckResult, got {type(self.result).__name__}")
        if isinstance(self.elapsed_ms, bool) or not isinstance(self.elapsed_ms, int):
            raise ValueError(f"elapsed_ms must be an integer, got {self.elapsed_ms!r}")
        if self.elapsed_ms < 0:
            raise ValueError(f"elapsed_ms must be non-negative, got {self.elapsed_ms}")
        # ordered set: keep first occurrence
        object.__setattr__(self, "tags", tuple(dict.fromkeys(self.tags)))

    # ── Constructors ─────────────────────────────────────────────────────

    @classmethod
    def from_check(
        cls,
        descriptor: HealthCheckDescriptor,
        result: CheckResult,
        elapsed_ms: int = 0,
    ) -> ExecutionResult:
        return cls(
            name=descriptor.name,
            result=result,
            tags=descriptor.tags,
            elapsed_ms=elapsed_ms,
            service_id=descriptor.service_id,
        )

    @classmethod
    def from_error(
        cls,
        descriptor: HealthCheckDescriptor,
        message: str,
        elapsed_ms: int = 0,
        status: Status = Status.HEALTH_CHECK_ERROR,
    ) -> ExecutionResult:
        """Error result for a check that threw, timed out or was not found."""
        return cls.from_check(descriptor, CheckResult(status, message), elapsed_ms)

    # ── Accessors ────────────────────────────────────────────────────────

    @property
    def status(self) -> Status:
        return self.result.status

    @property
    def message(self) -> str:
        return self.result.message

    # ── Ordering ─────────────────────────────────────────────────────────

    def sort_key(self) -> tuple[int, str, str, str, int]:
        return (
            -self.status.severity,
            collation_key(self.name),
            self.name.casefold(),
            self.name,
            self.service_id,
        )

    def __lt__(self, other: ExecutionResult) -> bool:
        if not isinstance(other, ExecutionResult):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tags": list(self.tags),
            "status": self.status.value,
            "message": self.message,
            "finished_at": self.finished_at.isoformat(),
            "elapsed_ms": self.elapsed_ms,
            "service_id": self.service_id,
        }

    def __str__(self) -> str:
        return (
            f"ExecutionResult [status={self.status.value}, "
            f"finishedAt={self.finished_at.isoformat()}, elapsedTimeInMs={self.elapsed_ms}]"
        )

"""Error taxonomy shared by the health and replication subsystems.

Raised at the store / check-provider seams. The executor and the bridge
convert them to results, so callers of those never see them.
"""

from __future__ import annotations


class RelaywatchError(Exception):
    """Base class for all relaywatch errors."""


# ── Content store ────────────────────────────────────────────────────────────


class ContentStoreError(RelaywatchError):
    """Raised when a content store operation fails."""

    def __init__(self, message: str, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class PermissionDenied(ContentStoreError):
    """The session lacks the privilege for the requested action."""


class NotFound(ContentStoreError):
    """A node (root or parent) is missing and could not be created."""


class RecordExists(ContentStoreError):
    """A child with the same key already exists under the parent."""


class InvalidName(ContentStoreError):
    """A node name is empty or contains a path separator."""


class StorageCommitFailed(ContentStoreError):
    """Pending changes could not be persisted; nothing was written."""


# ── Health checks ────────────────────────────────────────────────────────────


class CheckExecutionFailed(RelaywatchError):
    """A check raised or exceeded its time budget."""


class CheckNotFound(RelaywatchError):
    """A requested check is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"No health check registered with name '{name}'")

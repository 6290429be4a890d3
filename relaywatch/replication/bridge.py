"""Event replication bridge — persists events and emits replication requests.

For every incoming event the bridge:

1. ensures the root container exists (created segment by segment),
2. checks it may add nodes under the root,
3. derives the record id (event identifier, or a monotonic fallback),
4. creates the record, populates its fields and commits,
5. hands ``ReplicationRequest(now, ADD, record_path)`` to the sink.

Each event ends PERSISTED or FAILED. Failures stay local to their event:
they are logged, reported to ``on_failure`` and never raised to the caller.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..config import DEFAULT_NUGGETS_PATH
from ..errors import ContentStoreError, PermissionDenied
from .models import Event, EventRecord, ReplicationRequest
from .store import ADD_NODE, FOLDER, RECORD, ROOT, ContentStore, join_path, normalize_path

logger = logging.getLogger(__name__)

ReplicationSink = Callable[[ReplicationRequest], Any]

ROOT_PRIVILEGE_MESSAGE = "insufficient privilege to initialize root"
PERSIST_PRIVILEGE_MESSAGE = "insufficient privilege to persist event"


class BridgeState(str, Enum):
    PERSISTED = "PERSISTED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class BridgeOutcome:
    """Terminal state of one event."""

    state: BridgeState
    record_path: str | None = None
    request: ReplicationRequest | None = None
    error: ContentStoreError | None = None

    @property
    def persisted(self) -> bool:
        return self.state is BridgeState.PERSISTED

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""


class _FallbackIds:
    """Strictly increasing nanosecond ids, unique within the process."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            self._last = max(self._last + 1, time.monotonic_ns())
            return str(self._last)


_fallback_ids = _FallbackIds()


class RecordingSink:
    """Replication sink that keeps the most recent requests in memory."""

    def __init__(self, maxlen: int = 100) -> None:
        self._requests: deque[ReplicationRequest] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def __call__(self, request: ReplicationRequest) -> None:
        with self._lock:
            self._requests.append(request)

    def recent(self) -> list[ReplicationRequest]:
        with self._lock:
            return list(self._requests)

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)


class EventReplicationBridge:
    """Turns repository events into persisted records + replication requests."""

    def __init__(
        self,
        store: ContentStore,
        nuggets_path: str = DEFAULT_NUGGETS_PATH,
        sink: ReplicationSink | None = None,
        on_failure: Callable[[Event, BridgeOutcome], Any] | None = None,
    ) -> None:
        self.store = store
        self.nuggets_path = normalize_path(nuggets_path or DEFAULT_NUGGETS_PATH)
        self.sink = sink
        self.on_failure = on_failure
        self.enabled = False
        self._lock = threading.Lock()  # one unit of work at a time

    # ── Lifecycle ────────────────────────────────────────────────────────

    def enable(self) -> None:
        """Start the bridge, creating the root container best-effort."""
        logger.info("Enabling event replication bridge under %s", self.nuggets_path)
        with self._lock:
            try:
                self._ensure_root()
            except ContentStoreError as e:
                self._discard()
                logger.warning("Could not create nuggets path %s: %s", self.nuggets_path, e)
        self.enabled = True

    def disable(self) -> None:
        """Release the session. Pending changes are discarded, nothing is written."""
        logger.info("Disabling event replication bridge")
        with self._lock:
            self._discard()
            try:
                self.store.close()
            except ContentStoreError as e:
                logger.warning("Could not close content store session: %s", e)
        self.enabled = False

    # ── Processing ───────────────────────────────────────────────────────

    def process_events(self, events: Iterable[Event]) -> list[BridgeOutcome]:
        return [self.process_event(e) for e in events]

    def process_event(self, event: Event) -> BridgeOutcome:
        logger.info("Processing event %s at %s", event.identifier or "<no id>", event.path)
        with self._lock:
            try:
                record_path = self._persist(event)
            except ContentStoreError as e:
                self._discard()
                outcome = BridgeOutcome(BridgeState.FAILED, record_path=e.path or None, error=e)
                self._report_failure(event, outcome)
                return outcome

        request = ReplicationRequest.add(record_path)
        logger.info("Event persisted at %s", record_path)
        self._emit(request)
        return BridgeOutcome(BridgeState.PERSISTED, record_path=record_path, request=request)

    def _persist(self, event: Event) -> str:
        self._ensure_root()

        if not self.store.has_permission(self.nuggets_path, ADD_NODE):
            raise PermissionDenied(PERSIST_PRIVILEGE_MESSAGE, path=self.nuggets_path)

        record_id = derive_record_id(event)
        record_path = join_path(self.nuggets_path, record_id)
        try:
            created = self.store.create_child(self.nuggets_path, record_id, RECORD)
            record = EventRecord.from_event(event, record_id)
            for key, value in record.to_fields().items():
                self.store.set_field(created, key, value)
            self.store.commit()
        except ContentStoreError as e:
            raise type(e)(f"could not persist event at {record_path}: {e}", path=record_path) from e
        except (TypeError, ValueError) as e:
            raise ContentStoreError(
                f"could not persist event at {record_path}: {e}", path=record_path,
            ) from e
        return created

    def _ensure_root(self) -> None:
        """Create the root container segment by segment if it is missing."""
        if self.store.exists(self.nuggets_path):
            return
        logger.info("Initializing nuggets path %s", self.nuggets_path)
        parent = ROOT
        try:
            for name in self.nuggets_path.split("/"):
                if not name:
                    continue
                child = join_path(parent, name)
                if not self.store.exists(child):
                    logger.info("Adding %s", child)
                parent = self.store.get_or_create_container(parent, name, FOLDER)
        except PermissionDenied as e:
            raise PermissionDenied(ROOT_PRIVILEGE_MESSAGE, path=self.nuggets_path) from e
        self.store.commit()

    def _discard(self) -> None:
        """Roll back pending session changes; a failed rollback is only logged."""
        try:
            self.store.rollback()
        except ContentStoreError as e:
            logger.warning("Rollback failed: %s", e)

    # ── Reporting ────────────────────────────────────────────────────────

    def _emit(self, request: ReplicationRequest) -> None:
        if self.sink is None:
            return
        try:
            self.sink(request)
        except Exception:
            logger.exception("Replication sink error for %s", request.target_path)

    def _report_failure(self, event: Event, outcome: BridgeOutcome) -> None:
        logger.warning(
            "Could not persist event %s (%s): %s",
            event.identifier or "<no id>", event.path, outcome.message,
        )
        if self.on_failure:
            try:
                self.on_failure(event, outcome)
            except Exception:
                logger.exception("Failure callback error")


def derive_record_id(event: Event) -> str:
    """Event identifier if present, otherwise a process-unique counter value."""
    if event.identifier:
        return event.identifier
    return _fallback_ids.next()

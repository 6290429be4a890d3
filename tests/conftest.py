"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from relaywatch.replication.bridge import EventReplicationBridge, RecordingSink
from relaywatch.replication.models import Event, EventType
from relaywatch.replication.store import SqliteContentStore


@pytest.fixture
def store(tmp_path: Path) -> SqliteContentStore:
    """SqliteContentStore backed by a temp file."""
    s = SqliteContentStore(db_path=tmp_path / "content.db")
    yield s
    s.close()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def bridge(store: SqliteContentStore, sink: RecordingSink) -> EventReplicationBridge:
    return EventReplicationBridge(store, nuggets_path="/var/nuggets", sink=sink)


@pytest.fixture
def make_event():
    """Factory for events with sensible defaults."""

    def _make(identifier: str | None = "evt-1", **overrides) -> Event:
        fields = {
            "path": "/content/site/page",
            "date": datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
            "type": int(EventType.NODE_ADDED),
            "user_id": "admin",
            "identifier": identifier,
            "user_data": None,
            "info": {},
        }
        fields.update(overrides)
        return Event(**fields)

    return _make

"""Replication subsystem — event persistence and replication requests."""

from .bridge import BridgeOutcome, BridgeState, EventReplicationBridge, RecordingSink
from .models import ActionType, Event, EventRecord, EventType, ReplicationRequest
from .store import ContentStore, SqliteContentStore

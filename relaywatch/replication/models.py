"""Replication models — incoming events, persisted records, requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any

INFO_PREFIX = "info."


class ActionType(str, Enum):
    ADD = "ADD"
    DELETE = "DELETE"
    POLL = "POLL"
    TEST = "TEST"


class EventType(IntEnum):
    """Repository observation event types (bit flags)."""

    NODE_ADDED = 1
    NODE_REMOVED = 2
    PROPERTY_ADDED = 4
    PROPERTY_REMOVED = 8
    PROPERTY_CHANGED = 16
    NODE_MOVED = 32
    PERSIST = 64


@dataclass
class Event:
    """A repository event as delivered by an event source."""

    path: str
    date: datetime
    type: int
    user_id: str
    identifier: str | None = None
    user_data: str | None = None
    info: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EventRecord:
    """An event as persisted under the root container."""

    id: str
    path: str
    occurred_at: datetime
    type: int
    user_id: str
    user_data: str | None = None
    attributes: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_event(cls, event: Event, record_id: str) -> EventRecord:
        return cls(
            id=record_id,
            path=event.path,
            occurred_at=event.date,
            type=int(event.type),
            user_id=event.user_id,
            user_data=event.user_data,
            attributes={str(k): str(v) for k, v in (event.info or {}).items()},
        )

    def to_fields(self) -> dict[str, Any]:
        """Field key -> value, as written to the content store."""
        fields: dict[str, Any] = {
            "path": self.path,
            "date": self.occurred_at,
            "type": self.type,
            "userData": self.user_data,
            "userID": self.user_id,
        }
        for key, value in self.attributes.items():
            fields[INFO_PREFIX + key] = value
        return fields

    @classmethod
    def from_fields(cls, record_id: str, fields: dict[str, Any]) -> EventRecord:
        return cls(
            id=record_id,
            path=fields["path"],
            occurred_at=fields["date"],
            type=fields["type"],
            user_id=fields["userID"],
            user_data=fields.get("userData"),
            attributes={
                k[len(INFO_PREFIX):]: v for k, v in fields.items() if k.startswith(INFO_PREFIX)
            },
        )


@dataclass(frozen=True)
class ReplicationRequest:
    """Instruction for a downstream replication agent."""

    issued_at: datetime
    action: ActionType
    target_path: str

    @classmethod
    def add(cls, target_path: str) -> ReplicationRequest:
        return cls(datetime.now(timezone.utc), ActionType.ADD, target_path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "issued_at": self.issued_at.isoformat(),
            "action": self.action.value,
            "target_path": self.target_path,
        }

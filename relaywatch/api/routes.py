"""API routes for health results and event replication.

Endpoints:
  GET  /api/health                    — ranked results (?tags=a,-b, ?names=x,y)
  POST /api/events                    — persist an event, emit a replication request
  GET  /api/replication/requests      — recently emitted requests
  GET  /api/records/{record_id}       — fields of a persisted event record
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from relaywatch.errors import (
    ContentStoreError,
    InvalidName,
    NotFound,
    PermissionDenied,
    RecordExists,
)
from relaywatch.health.aggregator import summarize
from relaywatch.replication.bridge import BridgeOutcome
from relaywatch.replication.models import Event, EventType
from relaywatch.replication.store import RECORD, join_path

logger = logging.getLogger(__name__)

router = APIRouter()


class EventBody(BaseModel):
    path: str
    user_id: str
    identifier: str | None = None
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    type: int = int(EventType.NODE_ADDED)
    user_data: str | None = None
    info: dict[str, Any] = Field(default_factory=dict)

    def to_event(self) -> Event:
        return Event(
            path=self.path,
            date=self.date,
            type=self.type,
            user_id=self.user_id,
            identifier=self.identifier,
            user_data=self.user_data,
            info=self.info,
        )


def _split(value: str | None) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


def _error_status(outcome: BridgeOutcome) -> int:
    if isinstance(outcome.error, PermissionDenied):
        return 403
    if isinstance(outcome.error, RecordExists):
        return 409
    if isinstance(outcome.error, (NotFound, InvalidName)):
        return 422
    return 500


# ── Health ───────────────────────────────────────────────────────────────────


@router.get("/health")
def health(request: Request, tags: str | None = None, names: str | None = None) -> dict[str, Any]:
    """Run the selected checks and return them ranked worst-first."""
    executor = request.app.state.executor
    results = executor.execute(tags=_split(tags), names=_split(names))
    return summarize(results)


# ── Replication ──────────────────────────────────────────────────────────────


@router.post("/events", status_code=201)
def post_event(body: EventBody, request: Request) -> dict[str, Any]:
    """Persist one event and return the replication request it produced."""
    outcome = request.app.state.bridge.process_event(body.to_event())
    if not outcome.persisted:
        raise HTTPException(status_code=_error_status(outcome), detail=outcome.message)
    return {
        "state": outcome.state.value,
        "record_path": outcome.record_path,
        "request": outcome.request.to_dict(),
    }


@router.get("/replication/requests")
def list_requests(request: Request) -> dict[str, Any]:
    sink = request.app.state.replication_sink
    return {"requests": [r.to_dict() for r in sink.recent()]}


@router.get("/records/{record_id}")
def get_record(record_id: str, request: Request) -> dict[str, Any]:
    """Committed fields of one record, read through a separate session."""
    reader = request.app.state.record_store
    path = join_path(request.app.state.bridge.nuggets_path, record_id)
    try:
        if reader.kind(path) != RECORD:
            raise NotFound(f"Not a record: {path}", path=path)
        fields = reader.get_fields(path)
    except NotFound:
        raise HTTPException(status_code=404, detail=f"Record not found: {path}")
    except ContentStoreError as e:
        logger.warning("Could not read record %s: %s", path, e)
        raise HTTPException(status_code=503, detail="Content store unavailable")
    return {"path": path, "fields": fields}

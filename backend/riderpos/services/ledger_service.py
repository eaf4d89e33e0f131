# Overview: Append-only event log written alongside inventory and sale changes.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import LedgerEvent
from riderpos.time_utils import utcnow
"""
Ledger invariants:

- Append-only; no updates or deletes of existing events.
- Events are flushed inside the same DB transaction as the change they
  record, so a rollback removes them together.
- occurred_at is business time; created_at is system time (DB default).
"""


def append_ledger_event(
    *,
    event_type: str,
    entity_type: str,
    entity_id: int,
    rider_id: int | None = None,
    actor_id: int | None = None,
    transaction_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[str] = None,
) -> LedgerEvent:
    ev = LedgerEvent(
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        rider_id=rider_id,
        actor_id=actor_id,
        transaction_id=transaction_id,
        occurred_at=occurred_at or utcnow(),
        note=note,
        payload=payload,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def list_ledger_events(
    *,
    rider_id: int | None = None,
    event_type: str | None = None,
    limit: int = 100,
) -> list[LedgerEvent]:
    query = db.session.query(LedgerEvent)
    if rider_id is not None:
        query = query.filter(LedgerEvent.rider_id == rider_id)
    if event_type:
        query = query.filter(LedgerEvent.event_type == event_type)
    return query.order_by(LedgerEvent.id.desc()).limit(limit).all()

# Overview: Append-only shop activity ledger.

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from ..extensions import db
from ..models import ActivityEvent
from ..time_utils import parse_iso_datetime, utcnow

"""
Activity ledger invariants

- Append-only record of domain events; no updates or deletes.
- Written inside the same DB transaction as the change it records, so the
  caller commits both together.
- occurred_at is business time; created_at is system time (DB default).
- Reads filter inclusively: occurred_at <= as_of.
"""


def append_activity_event(
    *,
    shop_id: int,
    event_type: str,
    entity_type: str,
    entity_id: int,
    actor_user_id: int | None = None,
    occurred_at: Optional[datetime] = None,
    note: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> ActivityEvent:
    event = ActivityEvent(
        shop_id=shop_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        occurred_at=occurred_at or utcnow(),
        note=note[:255] if note else None,
        payload=json.dumps(payload, default=str, sort_keys=True) if payload else None,
    )
    db.session.add(event)
    return event


def list_activity_events(
    *,
    shop_id: int,
    entity_type: str | None = None,
    entity_id: int | None = None,
    event_type: str | None = None,
    as_of: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[ActivityEvent], int]:
    query = db.session.query(ActivityEvent).filter(ActivityEvent.shop_id == shop_id)
    if entity_type:
        query = query.filter(ActivityEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ActivityEvent.entity_id == entity_id)
    if event_type:
        query = query.filter(ActivityEvent.event_type == event_type)
    if as_of:
        as_of_dt = parse_iso_datetime(as_of)
        if as_of_dt is not None:
            query = query.filter(ActivityEvent.occurred_at <= as_of_dt)

    total = query.count()
    events = (
        query.order_by(ActivityEvent.occurred_at.desc(), ActivityEvent.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return events, total

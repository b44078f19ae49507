"""
Audit Event Store — append-only history of every accepted transition.

``append`` only flushes: the caller owns the transaction, so the status
mutation and its event commit (or roll back) together.  There is no update
or delete API.

Ordering: events of one item are returned by ``(created_at, id)``.
``created_at`` strictly increases per item; a timestamp that would not
advance past the item's latest event is bumped by one microsecond.
"""

import logging
from datetime import datetime, timedelta, timezone

from fieldops.core.exceptions import InvalidPayload
from fieldops.models import db
from fieldops.models.audit import EVENT_TYPES, WORKFLOW_FAMILIES, WorkflowEvent
from fieldops.models.auth import User

logger = logging.getLogger(__name__)

NOTE_REQUIRED_EVENTS = frozenset({"rejected", "comment"})
NON_STATUS_EVENTS = frozenset({"comment"})

_TICK = timedelta(microseconds=1)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _validate(family, event_type, note, new_values):
    errors = {}
    if family not in WORKFLOW_FAMILIES:
        errors["family"] = f"unknown family '{family}'"
    if event_type not in EVENT_TYPES:
        errors["event_type"] = f"unknown event type '{event_type}'"
    if event_type in NOTE_REQUIRED_EVENTS and not (note and note.strip()):
        errors["note"] = f"a note is required for '{event_type}'"
    if event_type not in NON_STATUS_EVENTS and "status" not in (new_values or {}):
        errors["new_values.status"] = "status-changing events must record the new status"
    if errors:
        raise InvalidPayload("Invalid audit event", details=errors)


def _next_timestamp(family: str, item_id: str) -> datetime:
    now = datetime.now(timezone.utc)
    latest = (
        db.session.query(WorkflowEvent.created_at)
        .filter_by(family=family, item_id=item_id)
        .order_by(WorkflowEvent.created_at.desc(), WorkflowEvent.id.desc())
        .limit(1)
        .scalar()
    )
    if latest is not None:
        latest = _aware(latest)
        if now <= latest:
            now = latest + _TICK
    return now


def append(
    family: str,
    item_id: str,
    event_type: str,
    actor,
    note: str | None = None,
    old_values: dict | None = None,
    new_values: dict | None = None,
) -> WorkflowEvent:
    """
    Append one event.  Uses ``flush`` so callers keep transaction control.

    Returns the (flushed) WorkflowEvent instance.
    """
    _validate(family, event_type, note, new_values)

    event = WorkflowEvent(
        family=family,
        item_id=str(item_id),
        actor_user_id=getattr(actor, "id", actor),
        event_type=event_type,
        event_notes=note,
        old_values=old_values or {},
        new_values=new_values or {},
        created_at=_next_timestamp(family, str(item_id)),
    )
    db.session.add(event)
    db.session.flush()
    return event


def list_events(family: str, item_id: str) -> list[WorkflowEvent]:
    """All events for one item, oldest first."""
    return (
        WorkflowEvent.query
        .filter_by(family=family, item_id=str(item_id))
        .order_by(WorkflowEvent.created_at.asc(), WorkflowEvent.id.asc())
        .all()
    )


def history(family: str, item_id: str) -> list[dict]:
    """Events as dicts with the actor's email as a display label."""
    rows = (
        db.session.query(WorkflowEvent, User.email)
        .outerjoin(User, User.id == WorkflowEvent.actor_user_id)
        .filter(WorkflowEvent.family == family, WorkflowEvent.item_id == str(item_id))
        .order_by(WorkflowEvent.created_at.asc(), WorkflowEvent.id.asc())
        .all()
    )
    result = []
    for event, email in rows:
        d = event.to_dict()
        d["actor_email"] = email or "Unknown"
        result.append(d)
    return result


def status_changes(events) -> int:
    """Number of events whose recorded status differs from the previous one."""
    count = 0
    previous = None
    for event in events:
        status = (event.new_values or {}).get("status")
        if status is None:
            continue
        if status != previous:
            count += 1
        previous = status
    return count

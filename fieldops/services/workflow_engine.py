"""
Workflow Engine — one generic state machine for every workflow family.

    engine = current_app.extensions["workflow_engine"]
    result = engine.apply(item, "approved", actor, {"note": "ok"})

Unit of work for ``apply``:
  1. look up (status, event_type) in the family table → IllegalTransition
  2. can_act(actor, item, required, scope)          → Forbidden
  3. family payload validator                       → InvalidPayload
  4. compare-and-swap UPDATE … WHERE status = :expected (rowcount must be 1,
     else Conflict), child-row effects, audit event append, commit

After commit, and outside the unit of work, the notification dispatcher and
the inventory sync collaborator run best-effort: their failures are logged
and never undo the transition.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import update

from fieldops.core.exceptions import (
    Conflict,
    Forbidden,
    IllegalTransition,
    InvalidPayload,
    NotFoundError,
)
from fieldops.models import db
from fieldops.models.audit import WorkflowEvent
from fieldops.services import audit_store, role_resolver, scope_store
from fieldops.services.collaborators import NoOpInventorySync
from fieldops.services.notification import NotificationDispatcher
from fieldops.services.workflow_families import FAMILIES, notification_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    item: object
    event: WorkflowEvent
    old_values: dict
    new_values: dict

    @property
    def family(self) -> str:
        return self.event.family

    @property
    def event_type(self) -> str:
        return self.event.event_type

    @property
    def next_status(self) -> str | None:
        return self.new_values.get("status")

    def to_dict(self) -> dict:
        return {
            "item": self.item.to_dict(),
            "event": self.event.to_dict(),
            "old_values": self.old_values,
            "new_values": self.new_values,
        }


def _jsonable(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _log_extra(family, item_id, event_type, actor):
    return {
        "family": family,
        "item_id": item_id,
        "event_type": event_type,
        "actor_id": getattr(actor, "id", None),
    }


class WorkflowEngine:
    """Interprets the per-family tables in workflow_families.py."""

    def __init__(self, families=None, dispatcher=None, inventory_sync=None):
        self.families = families or FAMILIES
        self.dispatcher = dispatcher or NotificationDispatcher(notification_rules(self.families))
        self.inventory_sync = inventory_sync or NoOpInventorySync()

    # ── Lookup ────────────────────────────────────────────────────────────

    def family(self, name: str):
        spec = self.families.get(name)
        if spec is None:
            raise NotFoundError("Workflow family", name)
        return spec

    def get(self, family: str, item_id: str):
        spec = self.family(family)
        item = db.session.get(spec.model, str(item_id))
        if item is None:
            raise NotFoundError(family, item_id)
        return item

    # ═══════════════════════════════════════════════════════════════════════
    # Create
    # ═══════════════════════════════════════════════════════════════════════

    def create(self, family: str, actor, payload: dict | None = None) -> TransitionResult:
        """Run the ``(None, "created")`` row: insert item, children and event."""
        spec = self.family(family)
        payload = payload or {}
        transition = spec.transition(None, "created")
        role_resolver.can_act(actor, None, transition.required, transition.scope)

        built = spec.build(actor, payload)
        item = built.item
        for area in item.ops_areas:
            scope_store.hub_for(area)

        item.status = spec.initial_status(payload) if spec.initial_status else transition.next_status
        item.created_by_user_id = actor.id

        new_values = {"status": item.status, **built.new_values}
        try:
            db.session.add(item)
            db.session.flush()
            event = audit_store.append(
                family, item.id, "created", actor,
                note=built.note, old_values={}, new_values=new_values,
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.info("Created %s in %s", family, item.ops_area,
                    extra=_log_extra(family, item.id, "created", actor))
        return TransitionResult(item, event, {}, new_values)

    # ═══════════════════════════════════════════════════════════════════════
    # Apply
    # ═══════════════════════════════════════════════════════════════════════

    def apply(self, item, event_type: str, actor, payload: dict | None = None,
              expected_status: str | None = None) -> TransitionResult:
        """Apply *event_type* to *item* on behalf of *actor*."""
        spec = self.family(item.FAMILY)
        if not isinstance(event_type, str):
            raise InvalidPayload("event_type must be a string", details={"event_type": "must be a string"})
        if expected_status is not None and not isinstance(expected_status, str):
            raise InvalidPayload("expected_status must be a string",
                                 details={"expected_status": "must be a string"})
        payload = payload or {}
        current = expected_status or item.status

        transition = spec.transition(current, event_type)
        if transition is None:
            raise IllegalTransition(spec.name, current, event_type)

        role_resolver.can_act(actor, item, transition.required, transition.scope)

        note = payload.get("note")
        if note is not None and not isinstance(note, str):
            raise InvalidPayload("note must be a string", details={"note": "must be a string"})
        validator = spec.validators.get(event_type)
        if validator is not None:
            validator(item, payload)

        now = datetime.now(timezone.utc)
        effect = spec.effects[transition.next_status](item, actor, payload, now)

        old_values = {"status": current}
        new_values = {"status": transition.next_status}
        for key, value in effect.values.items():
            old_values[key] = _jsonable(getattr(item, key))
            new_values[key] = _jsonable(value)
        old_values.update(effect.old)
        new_values.update(effect.new)

        model = spec.model
        try:
            res = db.session.execute(
                update(model)
                .where(model.id == item.id, model.status == current)
                .values(status=transition.next_status, updated_at=now, **effect.values)
            )
            if res.rowcount != 1:
                db.session.rollback()
                logger.info("Lost status race on %s (expected %s)", item.id, current,
                            extra=_log_extra(spec.name, item.id, event_type, actor))
                raise Conflict(spec.name, item.id, current)

            if effect.after is not None:
                effect.after()
            event = audit_store.append(
                spec.name, item.id, event_type, actor,
                note=note,
                old_values=old_values,
                new_values=new_values,
            )
            db.session.commit()
        except Conflict:
            raise
        except Exception:
            db.session.rollback()
            raise

        logger.info("Transition %s: %s → %s", event_type, current, transition.next_status,
                    extra=_log_extra(spec.name, item.id, event_type, actor))

        result = TransitionResult(item, event, old_values, new_values)
        self._after_commit(spec, result)
        return result

    def _after_commit(self, spec, result):
        try:
            self.dispatcher.dispatch(result)
        except Exception:
            db.session.rollback()
            logger.warning("Notification dispatch failed", exc_info=True,
                           extra={"family": spec.name, "item_id": result.item.id})

        if result.next_status in spec.sync_statuses:
            try:
                self.inventory_sync.sync(spec.name, result.item.id)
            except Exception:
                logger.warning("Inventory sync failed", exc_info=True,
                               extra={"family": spec.name, "item_id": result.item.id})

    # ═══════════════════════════════════════════════════════════════════════
    # Comments / introspection
    # ═══════════════════════════════════════════════════════════════════════

    def comment(self, item, actor, note: str) -> WorkflowEvent:
        """Append a ``comment`` event.  No status change, no notification."""
        if not isinstance(note, str) or not note.strip():
            raise InvalidPayload("A note is required", details={"note": "required"})
        if not role_resolver.can_view(actor, item):
            raise Forbidden("Actor cannot comment on this item")

        try:
            event = audit_store.append(item.FAMILY, item.id, "comment", actor, note=note.strip())
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        logger.info("Comment added", extra=_log_extra(item.FAMILY, item.id, "comment", actor))
        return event

    def available_events(self, item, actor) -> list[str]:
        """Event types *actor* may apply to *item* right now."""
        spec = self.family(item.FAMILY)
        caps = role_resolver.resolve(actor)
        events = []
        for event_type, transition in spec.rows_from(item.status):
            try:
                role_resolver.can_act(caps, item, transition.required, transition.scope)
            except Forbidden:
                continue
            if event_type not in events:
                events.append(event_type)
        return events

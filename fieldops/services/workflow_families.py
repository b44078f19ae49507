"""
Workflow families — per-family transition tables, validators and effects.

Each family is described by a ``FamilySpec`` value (data, not a subclass):

  transitions   {(current_status, event_type): Transition}
                ``(None, "created")`` is the creation row
  build         payload → unsaved item (+ children) for creation
  validators    {event_type: fn(item, payload)} raising InvalidPayload
  effects       {next_status: fn(item, actor, payload, now) → Effect}
  notifications allow-listed NotificationRule tuples
  sync_statuses statuses that trigger the inventory sync collaborator

The engine (workflow_engine.py) interprets these tables; nothing here
touches the session beyond catalog/reference lookups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from fieldops.core.exceptions import InvalidPayload
from fieldops.models import db
from fieldops.models.cycle_count import CycleCount, CycleCountLine
from fieldops.models.equipment import (
    EquipmentItem,
    EquipmentRequest,
    EquipmentRequestLineItem,
)
from fieldops.models.equipment_health import SEVERITIES, BrokenItemReport, MaintenanceRecord
from fieldops.models.inventory import InventoryMove, InventoryMoveLine
from fieldops.services import scope_store
from fieldops.services.notification import NotificationRule


# ═══════════════════════════════════════════════════════════════════════════
# Table types
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Transition:
    next_status: str
    required: tuple[str, ...]
    scope: str = "none"


@dataclass
class Effect:
    """Column changes for the CAS update plus extra audit snapshot keys.

    ``after`` runs once the status update has won the CAS and is where child
    rows (line items) are mutated.
    """

    values: dict = field(default_factory=dict)
    old: dict = field(default_factory=dict)
    new: dict = field(default_factory=dict)
    after: Callable | None = None


@dataclass
class Built:
    item: object
    note: str | None = None
    new_values: dict = field(default_factory=dict)


@dataclass(frozen=True)
class FamilySpec:
    name: str
    model: type
    states: frozenset
    terminal: frozenset
    transitions: dict
    build: Callable
    validators: dict = field(default_factory=dict)
    effects: dict = field(default_factory=dict)
    notifications: tuple = ()
    sync_statuses: frozenset = frozenset()
    initial_status: Callable | None = None

    def transition(self, status, event_type):
        return self.transitions.get((status, event_type))

    def rows_from(self, status):
        return [(ev, t) for (src, ev), t in self.transitions.items() if src == status]


# ═══════════════════════════════════════════════════════════════════════════
# Shared validation helpers
# ═══════════════════════════════════════════════════════════════════════════


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _text(payload: dict, key: str, errors: dict, required: bool = True):
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors[key] = "required"
        return None
    if not isinstance(value, str):
        errors[key] = "must be a string"
        return None
    return value.strip()


def _line_text(raw: dict, key: str, errors: dict, prefix: str):
    """Optional free text on a child line; errors keyed ``prefix.key``."""
    line_errors = {}
    value = _text(raw, key, line_errors, required=False)
    if line_errors:
        errors[f"{prefix}.{key}"] = line_errors[key]
    return value


def _parse_date(value, key: str, errors: dict):
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        errors[key] = "must be an ISO date (YYYY-MM-DD)"
        return None


def _line_list(payload: dict, key: str, errors: dict) -> list:
    raw = payload.get(key)
    if not isinstance(raw, list) or not raw:
        errors[key] = "at least one line is required"
        return []
    return raw


def _catalog_by_sku(sku):
    if not isinstance(sku, str) or not sku:
        return None
    return EquipmentItem.query.filter_by(sku=sku).first()


def _line_map(payload: dict, key: str, lines, *, minimum: int) -> dict[int, int]:
    """Parse ``{line_id: qty}`` against the item's own lines."""
    raw = payload.get(key)
    if raw in (None, {}):
        return {}
    if not isinstance(raw, dict):
        raise InvalidPayload(f"{key} must be an object", details={key: "expected {line_id: quantity}"})

    known = {line.id for line in lines}
    parsed, errors = {}, {}
    for raw_id, qty in raw.items():
        try:
            line_id = int(raw_id)
        except (TypeError, ValueError):
            errors[f"{key}.{raw_id}"] = "unknown line"
            continue
        if line_id not in known:
            errors[f"{key}.{raw_id}"] = "unknown line"
        elif not _is_int(qty) or qty < minimum:
            errors[f"{key}.{raw_id}"] = (
                "must be a positive integer" if minimum > 0 else "must be an integer >= 0"
            )
        else:
            parsed[line_id] = qty
    if errors:
        raise InvalidPayload(f"Invalid {key}", details=errors)
    return parsed


def require_note(item, payload):
    note = payload.get("note")
    if not isinstance(note, str) or not note.strip():
        raise InvalidPayload("A note is required", details={"note": "required"})


def _note(payload):
    note = payload.get("note")
    return note.strip() if isinstance(note, str) and note.strip() else None


# ═══════════════════════════════════════════════════════════════════════════
# Equipment requests
# ═══════════════════════════════════════════════════════════════════════════


def _catalog_item(raw: dict):
    equipment_id = raw.get("equipment_id")
    if _is_int(equipment_id):
        equipment = db.session.get(EquipmentItem, equipment_id)
    else:
        equipment = _catalog_by_sku(raw.get("sku"))
    if equipment is None or not equipment.is_active:
        return None
    return equipment


def build_equipment_request(actor, payload: dict) -> Built:
    errors = {}
    ops_area = _text(payload, "ops_area", errors)
    notes = _text(payload, "notes", errors, required=False) or ""
    required_by = _parse_date(payload.get("required_by_date"), "required_by_date", errors)

    lines = []
    for i, raw in enumerate(_line_list(payload, "line_items", errors)):
        if not isinstance(raw, dict):
            errors[f"line_items[{i}]"] = "must be an object"
            continue
        qty = raw.get("quantity")
        if not _is_int(qty) or qty <= 0:
            errors[f"line_items[{i}].quantity"] = "must be a positive integer"
        reason = _line_text(raw, "reason", errors, f"line_items[{i}]")
        equipment = _catalog_item(raw)
        if equipment is None:
            errors[f"line_items[{i}].equipment_id"] = "unknown or inactive equipment"
            continue
        lines.append(EquipmentRequestLineItem(
            equipment_id=equipment.id,
            quantity=qty,
            reason=reason or "",
        ))
    if errors:
        raise InvalidPayload("Invalid equipment request", details=errors)

    hub = scope_store.hub_for(ops_area)
    item = EquipmentRequest(
        ops_area=ops_area,
        hub=hub,
        required_by_date=required_by,
        notes=notes,
    )
    item.line_items = lines
    return Built(
        item,
        note=f"Equipment request submitted for {ops_area}",
        new_values={"hub": hub, "line_items_count": len(lines)},
    )


def _validate_opx_review(item, payload):
    _line_map(payload, "quantities", item.line_items, minimum=1)


def _validate_resubmission(item, payload):
    _line_map(payload, "quantities", item.line_items, minimum=1)
    errors = {}
    _parse_date(payload.get("required_by_date"), "required_by_date", errors)
    _text(payload, "notes", errors, required=False)
    if errors:
        raise InvalidPayload("Invalid resubmission", details=errors)


def _quantity_changes(item, quantities):
    lines = {li.id: li for li in item.line_items}
    old, new = {}, {}
    for line_id, qty in quantities.items():
        if lines[line_id].quantity != qty:
            old[str(line_id)] = lines[line_id].quantity
            new[str(line_id)] = qty
    return lines, old, new


def _opx_approve(item, actor, payload, now) -> Effect:
    quantities = _line_map(payload, "quantities", item.line_items, minimum=1)
    lines, old_q, new_q = _quantity_changes(item, quantities)

    def after():
        for key, qty in new_q.items():
            line = lines[int(key)]
            if line.original_quantity is None:
                line.original_quantity = line.quantity
            line.quantity = qty
            line.modified_by_opx = True

    effect = Effect(
        values={"opx_reviewed_by": actor.id, "opx_reviewed_at": now, "opx_notes": _note(payload)},
        after=after,
    )
    if new_q:
        effect.old["quantities"] = old_q
        effect.new["quantities"] = new_q
    return effect


def _opx_reject(item, actor, payload, now) -> Effect:
    return Effect(values={
        "opx_reviewed_by": actor.id,
        "opx_reviewed_at": now,
        "opx_notes": _note(payload),
    })


def _resubmit(item, actor, payload, now) -> Effect:
    quantities = _line_map(payload, "quantities", item.line_items, minimum=1)
    lines, old_q, new_q = _quantity_changes(item, quantities)

    values = {"opx_reviewed_by": None, "opx_reviewed_at": None, "opx_notes": None}
    if "notes" in payload:
        values["notes"] = _text(payload, "notes", {}, required=False) or ""
    if payload.get("required_by_date"):
        values["required_by_date"] = date.fromisoformat(str(payload["required_by_date"]))

    def after():
        for line in item.line_items:
            line.approval_status = "pending"
        for key, qty in new_q.items():
            lines[int(key)].quantity = qty

    effect = Effect(values=values, after=after)
    if new_q:
        effect.old["quantities"] = old_q
        effect.new["quantities"] = new_q
    return effect


def _hub_fulfil(item, actor, payload, now) -> Effect:
    def after():
        for line in item.line_items:
            line.approval_status = "approved"
            line.approved_by = actor.id
            line.approved_at = now

    return Effect(values={"fulfilled_at": now}, after=after)


def _hub_decline(item, actor, payload, now) -> Effect:
    reason = _note(payload)

    def after():
        for line in item.line_items:
            line.approval_status = "declined"
            line.decline_reason = reason

    return Effect(values={"decline_reason": reason, "declined_at": now}, after=after)


EQUIPMENT_REQUEST = FamilySpec(
    name="equipment_request",
    model=EquipmentRequest,
    states=frozenset({"pending_opx", "opx_approved", "opx_rejected", "fulfilled", "declined"}),
    terminal=frozenset({"fulfilled", "declined"}),
    transitions={
        (None, "created"): Transition("pending_opx", ("field_staff",)),
        ("pending_opx", "approved"): Transition("opx_approved", ("opx",), "area"),
        ("pending_opx", "rejected"): Transition("opx_rejected", ("opx",), "area"),
        ("opx_rejected", "modified"): Transition("pending_opx", ("field_staff",), "owner"),
        ("opx_approved", "fulfilled"): Transition("fulfilled", ("hub_admin",), "hub"),
        ("opx_approved", "rejected"): Transition("declined", ("hub_admin",), "hub"),
    },
    build=build_equipment_request,
    validators={
        "approved": _validate_opx_review,
        "rejected": require_note,
        "modified": _validate_resubmission,
    },
    effects={
        "opx_approved": _opx_approve,
        "opx_rejected": _opx_reject,
        "pending_opx": _resubmit,
        "fulfilled": _hub_fulfil,
        "declined": _hub_decline,
    },
    notifications=(
        NotificationRule(
            "approved", "opx_approved", "Request Approved by OPX",
            lambda r: f"Your equipment request for {r.ops_area} has been approved and forwarded to the Hub.",
            "success", "/my-requests",
        ),
        NotificationRule(
            "rejected", "opx_rejected", "Request Rejected by OPX",
            lambda r: f"Your equipment request for {r.ops_area} was rejected. Reason: {r.opx_notes}",
            "error", "/my-requests",
        ),
        NotificationRule(
            "fulfilled", "fulfilled", "Request Fulfilled",
            lambda r: f"Your equipment request for {r.ops_area} has been fulfilled and is being prepared.",
            "success", "/my-requests",
        ),
        NotificationRule(
            "rejected", "declined", "Request Declined by Hub",
            lambda r: f"Your equipment request for {r.ops_area} was declined by the Hub. Reason: {r.decline_reason}",
            "error", "/my-requests",
        ),
    ),
)


# ═══════════════════════════════════════════════════════════════════════════
# Cycle counts
# ═══════════════════════════════════════════════════════════════════════════


def build_cycle_count(actor, payload: dict) -> Built:
    errors = {}
    ops_area = _text(payload, "ops_area", errors)
    location = _text(payload, "location_name", errors)

    lines = []
    for i, raw in enumerate(_line_list(payload, "lines", errors)):
        if not isinstance(raw, dict):
            errors[f"lines[{i}]"] = "must be an object"
            continue
        sku = raw.get("sku")
        if not isinstance(sku, str) or not sku.strip():
            errors[f"lines[{i}].sku"] = "required"
            continue
        qty = raw.get("recorded_qty")
        if not _is_int(qty) or qty < 0:
            errors[f"lines[{i}].recorded_qty"] = "must be an integer >= 0"
            continue
        notes = _line_text(raw, "notes", errors, f"lines[{i}]")
        photo_path = _line_text(raw, "photo_path", errors, f"lines[{i}]")
        equipment = _catalog_by_sku(sku.strip())
        lines.append(CycleCountLine(
            sku=sku.strip(),
            equipment_item_id=equipment.id if equipment else None,
            recorded_qty=qty,
            notes=notes or "",
            photo_path=photo_path,
        ))
    if errors:
        raise InvalidPayload("Invalid cycle count", details=errors)

    item = CycleCount(ops_area=ops_area, location_name=location)
    item.lines = lines
    return Built(
        item,
        note=f"Cycle count submitted for {location}",
        new_values={"lines_count": len(lines)},
    )


def _validate_count_review(item, payload):
    errors = {}
    for i, line in enumerate(item.lines):
        if line.recorded_qty is None or line.recorded_qty < 0:
            errors[f"lines[{i}].recorded_qty"] = "must be an integer >= 0"
    if errors:
        raise InvalidPayload("Cycle count has invalid quantities", details=errors)
    _line_map(payload, "corrections", item.lines, minimum=0)


def _count_validate(item, actor, payload, now) -> Effect:
    corrections = _line_map(payload, "corrections", item.lines, minimum=0)
    lines = {ln.id: ln for ln in item.lines}
    old_q = {str(k): lines[k].recorded_qty for k in corrections}
    new_q = {str(k): v for k, v in corrections.items()}

    def after():
        for line_id, qty in corrections.items():
            lines[line_id].recorded_qty = qty

    effect = Effect(values={"validated_at": now, "validated_by": actor.id}, after=after)
    if corrections:
        effect.old["corrections"] = old_q
        effect.new["corrections"] = new_q
    return effect


def _count_reject(item, actor, payload, now) -> Effect:
    return Effect(values={"rejection_note": _note(payload)})


CYCLE_COUNT = FamilySpec(
    name="cycle_count",
    model=CycleCount,
    states=frozenset({"submitted", "validated", "rejected"}),
    terminal=frozenset({"validated", "rejected"}),
    transitions={
        (None, "created"): Transition("submitted", ("field_staff",)),
        ("submitted", "validated"): Transition("validated", ("opx", "admin"), "area"),
        ("submitted", "rejected"): Transition("rejected", ("opx", "admin"), "area"),
    },
    build=build_cycle_count,
    validators={
        "validated": _validate_count_review,
        "rejected": require_note,
    },
    effects={
        "validated": _count_validate,
        "rejected": _count_reject,
    },
    notifications=(
        NotificationRule(
            "validated", "validated", "Cycle Count Validated",
            lambda c: f"Your cycle count for {c.location_name} has been validated.",
            "success", "/my-cycle-counts",
        ),
        NotificationRule(
            "rejected", "rejected", "Cycle Count Rejected",
            lambda c: f"Your cycle count for {c.location_name} was rejected. Reason: {c.rejection_note}",
            "error", "/my-cycle-counts",
        ),
    ),
    sync_statuses=frozenset({"validated"}),
)


# ═══════════════════════════════════════════════════════════════════════════
# Broken-item reports
# ═══════════════════════════════════════════════════════════════════════════


def build_broken_item_report(actor, payload: dict) -> Built:
    errors = {}
    ops_area = _text(payload, "ops_area", errors)
    sku = _text(payload, "sku", errors)
    description = _text(payload, "description", errors)
    location = _text(payload, "location_name", errors, required=False)
    photo_path = _text(payload, "photo_path", errors, required=False)
    severity = payload.get("severity") or "medium"
    if severity not in SEVERITIES:
        errors["severity"] = f"must be one of {', '.join(SEVERITIES)}"
    if errors:
        raise InvalidPayload("Invalid broken item report", details=errors)

    equipment = _catalog_by_sku(sku)
    item = BrokenItemReport(
        ops_area=ops_area,
        sku=sku,
        equipment_item_id=equipment.id if equipment else None,
        location_name=location,
        description=description,
        severity=severity,
        photo_path=photo_path,
    )
    return Built(item, note=f"Broken item reported: {sku}", new_values={"severity": severity})


def _report_resolve(item, actor, payload, now) -> Effect:
    return Effect(values={"resolved_at": now})


BROKEN_ITEM_REPORT = FamilySpec(
    name="broken_item_report",
    model=BrokenItemReport,
    states=frozenset({"open", "in_maintenance", "resolved"}),
    terminal=frozenset({"resolved"}),
    transitions={
        (None, "created"): Transition("open", ("field_staff",)),
        ("open", "modified"): Transition("in_maintenance", ("opx", "admin"), "area"),
        ("open", "validated"): Transition("resolved", ("opx", "admin"), "area"),
        ("in_maintenance", "validated"): Transition("resolved", ("opx", "admin"), "area"),
    },
    build=build_broken_item_report,
    effects={
        "in_maintenance": lambda item, actor, payload, now: Effect(),
        "resolved": _report_resolve,
    },
    notifications=(
        NotificationRule(
            "modified", "in_maintenance", "Broken Item In Maintenance",
            lambda b: f"Your report for {b.sku} has been sent to maintenance.",
            "info", "/my-reports",
        ),
        NotificationRule(
            "validated", "resolved", "Broken Item Resolved",
            lambda b: f"Your report for {b.sku} has been resolved.",
            "success", "/my-reports",
        ),
    ),
)


# ═══════════════════════════════════════════════════════════════════════════
# Maintenance records
# ═══════════════════════════════════════════════════════════════════════════


def build_maintenance_record(actor, payload: dict) -> Built:
    errors = {}
    sku = _text(payload, "sku", errors)
    maintenance_type = _text(payload, "maintenance_type", errors)
    ops_area = _text(payload, "ops_area", errors, required=False)
    notes = _text(payload, "notes", errors, required=False)
    photo_path = _text(payload, "photo_path", errors, required=False)

    report_id = payload.get("broken_item_report_id")
    report = None
    if report_id:
        report = db.session.get(BrokenItemReport, str(report_id))
        if report is None:
            errors["broken_item_report_id"] = "unknown broken item report"
    if ops_area is None:
        if report is not None:
            ops_area = report.ops_area
        else:
            errors.setdefault("ops_area", "required")
    if errors:
        raise InvalidPayload("Invalid maintenance record", details=errors)

    equipment = _catalog_by_sku(sku)
    item = MaintenanceRecord(
        ops_area=ops_area,
        sku=sku,
        equipment_item_id=equipment.id if equipment else None,
        maintenance_type=maintenance_type,
        notes=notes or "",
        photo_path=photo_path,
        broken_item_report_id=report.id if report else None,
    )
    return Built(
        item,
        note=f"Maintenance recorded for {sku}",
        new_values={"maintenance_type": maintenance_type},
    )


MAINTENANCE_RECORD = FamilySpec(
    name="maintenance_record",
    model=MaintenanceRecord,
    states=frozenset({"open", "completed"}),
    terminal=frozenset({"completed"}),
    transitions={
        (None, "created"): Transition("open", ("field_staff", "opx", "admin")),
        ("open", "fulfilled"): Transition("completed", ("opx", "admin"), "area"),
    },
    build=build_maintenance_record,
    effects={
        "completed": lambda item, actor, payload, now: Effect(values={"completed_at": now}),
    },
    notifications=(
        NotificationRule(
            "fulfilled", "completed", "Maintenance Completed",
            lambda m: f"Maintenance ({m.maintenance_type}) for {m.sku} has been completed.",
            "success", "/maintenance",
        ),
    ),
    sync_statuses=frozenset({"completed"}),
)


# ═══════════════════════════════════════════════════════════════════════════
# Inventory moves
# ═══════════════════════════════════════════════════════════════════════════


def build_inventory_move(actor, payload: dict) -> Built:
    errors = {}
    if payload.get("source_ops_area") in (None, ""):
        source = _text(payload, "ops_area", errors)
    else:
        source = _text(payload, "source_ops_area", errors)
    target = _text(payload, "target_ops_area", errors)
    source_location = _text(payload, "source_location_name", errors, required=False)
    target_location = _text(payload, "target_location_name", errors, required=False)
    notes = _text(payload, "notes", errors, required=False)
    if "draft" in payload and not isinstance(payload["draft"], bool):
        errors["draft"] = "must be a boolean"

    lines = []
    for i, raw in enumerate(_line_list(payload, "lines", errors)):
        if not isinstance(raw, dict):
            errors[f"lines[{i}]"] = "must be an object"
            continue
        sku = raw.get("sku")
        if not isinstance(sku, str) or not sku.strip():
            errors[f"lines[{i}].sku"] = "required"
            continue
        qty = raw.get("qty")
        if not _is_int(qty) or qty <= 0:
            errors[f"lines[{i}].qty"] = "must be a positive integer"
            continue
        line_notes = _line_text(raw, "notes", errors, f"lines[{i}]")
        equipment = _catalog_by_sku(sku.strip())
        lines.append(InventoryMoveLine(
            sku=sku.strip(),
            equipment_item_id=equipment.id if equipment else None,
            qty=qty,
            notes=line_notes or "",
        ))
    if errors:
        raise InvalidPayload("Invalid inventory move", details=errors)

    item = InventoryMove(
        ops_area=source,
        source_location_name=source_location,
        target_ops_area=target,
        target_location_name=target_location,
        notes=notes or "",
    )
    item.lines = lines
    return Built(
        item,
        note=f"Inventory move from {source} to {target}",
        new_values={"target_ops_area": target, "lines_count": len(lines)},
    )


INVENTORY_MOVE = FamilySpec(
    name="inventory_move",
    model=InventoryMove,
    states=frozenset({"draft", "submitted", "completed", "cancelled"}),
    terminal=frozenset({"completed", "cancelled"}),
    transitions={
        (None, "created"): Transition("submitted", ("field_staff", "opx")),
        ("draft", "modified"): Transition("submitted", ("field_staff", "opx"), "owner"),
        ("draft", "fulfilled"): Transition("completed", ("opx", "admin"), "area"),
        ("submitted", "fulfilled"): Transition("completed", ("opx", "admin"), "area"),
        ("draft", "cancelled"): Transition("cancelled", ("opx", "admin"), "area"),
        ("submitted", "cancelled"): Transition("cancelled", ("opx", "admin"), "area"),
    },
    build=build_inventory_move,
    effects={
        "submitted": lambda item, actor, payload, now: Effect(),
        "completed": lambda item, actor, payload, now: Effect(values={"completed_at": now}),
        "cancelled": lambda item, actor, payload, now: Effect(values={"cancelled_at": now}),
    },
    notifications=(
        NotificationRule(
            "fulfilled", "completed", "Inventory Move Completed",
            lambda m: f"Your inventory move from {m.ops_area} to {m.target_ops_area} has been completed.",
            "success", "/inventory-moves",
        ),
        NotificationRule(
            "cancelled", "cancelled", "Inventory Move Cancelled",
            lambda m: f"Your inventory move from {m.ops_area} to {m.target_ops_area} was cancelled.",
            "warning", "/inventory-moves",
        ),
    ),
    sync_statuses=frozenset({"completed"}),
    initial_status=lambda payload: "draft" if payload.get("draft") is True else "submitted",
)


# ── Registry ─────────────────────────────────────────────────────────────

FAMILIES: dict[str, FamilySpec] = {
    spec.name: spec
    for spec in (
        EQUIPMENT_REQUEST,
        CYCLE_COUNT,
        BROKEN_ITEM_REPORT,
        MAINTENANCE_RECORD,
        INVENTORY_MOVE,
    )
}


def notification_rules(families=None) -> dict:
    """Flatten every family's allow-list into {(family, event, status): rule}."""
    rules = {}
    for spec in (families or FAMILIES).values():
        for rule in spec.notifications:
            rules[(spec.name, rule.event_type, rule.next_status)] = rule
    return rules

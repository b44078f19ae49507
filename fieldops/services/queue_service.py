"""
Queue Service — work lists for reviewers, hubs and requesters.

    review_queue(actor)    pending OPX work in the actor's operating areas
    hub_queue(actor)       approved equipment requests awaiting the actor's hubs
    stale_reviews(actor)   pending_opx requests older than ``opx_reminder_hours``
    list_items(...)        per-family listing filtered to what the actor may see

All queries are filtered by the actor's resolved scope; ``super_admin`` sees
every area and hub.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_

from fieldops.models.cycle_count import CycleCount
from fieldops.models.equipment import EquipmentRequest
from fieldops.models.inventory import InventoryMove
from fieldops.services import role_resolver, scope_store

logger = logging.getLogger(__name__)


def _area_filter(q, model, caps):
    if caps.wildcard:
        return q
    areas = list(caps.reviewable_areas)
    if model is InventoryMove:
        return q.filter(or_(model.ops_area.in_(areas), model.target_ops_area.in_(areas)))
    return q.filter(model.ops_area.in_(areas))


def review_queue(actor) -> dict:
    """Items waiting for an OPX decision in the actor's areas."""
    caps = role_resolver.resolve(actor)
    if not (caps.is_opx or caps.is_admin):
        return {"equipment_requests": [], "cycle_counts": []}

    requests = _area_filter(
        EquipmentRequest.query.filter_by(status="pending_opx"), EquipmentRequest, caps,
    ).order_by(EquipmentRequest.created_at.asc()).all()
    counts = _area_filter(
        CycleCount.query.filter_by(status="submitted"), CycleCount, caps,
    ).order_by(CycleCount.created_at.asc()).all()

    if not caps.is_opx:
        # admin without opx only reviews cycle counts
        requests = []
    return {"equipment_requests": requests, "cycle_counts": counts}


def hub_queue(actor) -> list:
    """Equipment requests approved by OPX and routed to one of the actor's hubs."""
    caps = role_resolver.resolve(actor)
    if not caps.is_hub_admin:
        return []

    q = EquipmentRequest.query.filter_by(status="opx_approved")
    if not caps.wildcard:
        areas = scope_store.areas_for_hubs(caps.fulfillable_hubs)
        q = q.filter(EquipmentRequest.ops_area.in_(areas))
    return q.order_by(EquipmentRequest.created_at.asc()).all()


def stale_reviews(actor, now: datetime | None = None) -> list:
    """pending_opx requests in the actor's areas older than the reminder threshold."""
    caps = role_resolver.resolve(actor)
    if not caps.is_opx:
        return []

    hours = scope_store.get_setting("opx_reminder_hours")
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
    q = EquipmentRequest.query.filter(
        EquipmentRequest.status == "pending_opx",
        EquipmentRequest.created_at < cutoff,
    )
    return _area_filter(q, EquipmentRequest, caps).order_by(EquipmentRequest.created_at.asc()).all()


def list_items(spec, actor, *, status=None, ops_area=None, mine=False, limit=100, offset=0):
    """
    List items of one family visible to *actor*.

    Visibility: own items, items in a reviewable area, and (for equipment
    requests) items routed to a fulfillable hub.
    """
    caps = role_resolver.resolve(actor)
    model = spec.model
    q = model.query

    if mine:
        q = q.filter(model.created_by_user_id == caps.user_id)
    elif not caps.wildcard:
        areas = set(caps.reviewable_areas)
        areas.update(scope_store.areas_for_hubs(caps.fulfillable_hubs))
        clauses = [model.created_by_user_id == caps.user_id, model.ops_area.in_(areas)]
        if model is InventoryMove:
            clauses.append(model.target_ops_area.in_(areas))
        q = q.filter(or_(*clauses))

    if status:
        q = q.filter(model.status == status)
    if ops_area:
        q = q.filter(model.ops_area == ops_area)

    total = q.count()
    items = q.order_by(model.created_at.desc()).offset(offset).limit(limit).all()
    return items, total

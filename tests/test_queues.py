"""
Queue Service tests.

Covers:
  - review / hub queues filtered by resolved scope
  - stale-review reminders driven by the ``opx_reminder_hours`` setting
  - list_items visibility, filters and pagination
"""

from datetime import datetime, timedelta, timezone

import pytest

from fieldops.services import queue_service, scope_store
from fieldops.services.workflow_families import FAMILIES


@pytest.fixture()
def seeded(engine, world, request_payload):
    """Pending + approved requests and a submitted count in each area."""
    items = {}
    items["tuscany_pending"] = engine.create("equipment_request", world.field, request_payload()).item
    items["czech_pending"] = engine.create("equipment_request", world.other_field, request_payload("Czech")).item
    approved = engine.create("equipment_request", world.field, request_payload()).item
    engine.apply(approved, "approved", world.opx_tuscany)
    items["tuscany_approved"] = approved
    for area in ("Tuscany", "Czech"):
        items[f"{area.lower()}_count"] = engine.create("cycle_count", world.field, {
            "ops_area": area,
            "location_name": f"{area} store",
            "lines": [{"sku": "TENT-01", "recorded_qty": 1}],
        }).item
    return items


def _ids(items):
    return {i.id for i in items}


# ═══════════════════════════════════════════════════════════════════════════════
# A — Review & hub queues
# ═══════════════════════════════════════════════════════════════════════════════


class TestReviewQueue:

    def test_opx_sees_own_area_only(self, world, seeded):
        queue = queue_service.review_queue(world.opx_tuscany)
        assert _ids(queue["equipment_requests"]) == {seeded["tuscany_pending"].id}
        assert _ids(queue["cycle_counts"]) == {seeded["tuscany_count"].id}

    def test_unassigned_opx_sees_nothing(self, world, seeded):
        queue = queue_service.review_queue(world.opx_unassigned)
        assert queue == {"equipment_requests": [], "cycle_counts": []}

    def test_field_staff_has_no_review_queue(self, world, seeded):
        assert queue_service.review_queue(world.field) == {"equipment_requests": [], "cycle_counts": []}

    def test_area_admin_reviews_counts_only(self, world, seeded, factory):
        factory.give_area(world.admin, "Czech")
        queue = queue_service.review_queue(world.admin)
        assert queue["equipment_requests"] == []
        assert _ids(queue["cycle_counts"]) == {seeded["czech_count"].id}

    def test_super_admin_sees_everything(self, world, seeded):
        queue = queue_service.review_queue(world.super_admin)
        assert _ids(queue["equipment_requests"]) == {seeded["tuscany_pending"].id, seeded["czech_pending"].id}
        assert len(queue["cycle_counts"]) == 2


class TestHubQueue:

    def test_hub_sees_approved_requests_for_its_areas(self, world, seeded):
        assert _ids(queue_service.hub_queue(world.hub_italy)) == {seeded["tuscany_approved"].id}
        assert queue_service.hub_queue(world.hub_central) == []

    def test_non_hub_actor(self, world, seeded):
        assert queue_service.hub_queue(world.opx_tuscany) == []

    def test_follows_rebinding(self, world, seeded):
        scope_store.set_binding(world.admin, "Tuscany", "Central Hub")
        assert queue_service.hub_queue(world.hub_italy) == []
        assert _ids(queue_service.hub_queue(world.hub_central)) == {seeded["tuscany_approved"].id}


# ═══════════════════════════════════════════════════════════════════════════════
# B — Stale reviews
# ═══════════════════════════════════════════════════════════════════════════════


class TestStaleReviews:

    def test_nothing_stale_yet(self, world, seeded):
        assert queue_service.stale_reviews(world.opx_tuscany) == []

    def test_older_than_default_threshold(self, world, seeded):
        later = datetime.now(timezone.utc) + timedelta(hours=25)
        stale = queue_service.stale_reviews(world.opx_tuscany, now=later)
        assert _ids(stale) == {seeded["tuscany_pending"].id}

    def test_threshold_is_configurable(self, world, seeded):
        later = datetime.now(timezone.utc) + timedelta(hours=25)
        scope_store.set_setting(world.admin, "opx_reminder_hours", 48)
        assert queue_service.stale_reviews(world.opx_tuscany, now=later) == []
        scope_store.set_setting(world.admin, "opx_reminder_hours", 1)
        soon = datetime.now(timezone.utc) + timedelta(hours=2)
        assert len(queue_service.stale_reviews(world.opx_tuscany, now=soon)) == 1

    def test_only_for_reviewers(self, world, seeded):
        later = datetime.now(timezone.utc) + timedelta(hours=25)
        assert queue_service.stale_reviews(world.field, now=later) == []


# ═══════════════════════════════════════════════════════════════════════════════
# C — list_items
# ═══════════════════════════════════════════════════════════════════════════════


class TestListItems:

    spec = FAMILIES["equipment_request"]

    def test_mine(self, world, seeded):
        items, total = queue_service.list_items(self.spec, world.field, mine=True)
        assert total == 2
        assert _ids(items) == {seeded["tuscany_pending"].id, seeded["tuscany_approved"].id}

    def test_visibility_by_scope(self, world, seeded):
        _, total = queue_service.list_items(self.spec, world.opx_czech)
        assert total == 1
        items, _ = queue_service.list_items(self.spec, world.hub_italy)
        assert _ids(items) == {seeded["tuscany_pending"].id, seeded["tuscany_approved"].id}
        _, total = queue_service.list_items(self.spec, world.super_admin)
        assert total == 3

    def test_filters_and_paging(self, world, seeded):
        items, total = queue_service.list_items(self.spec, world.super_admin, status="pending_opx")
        assert total == 2
        items, total = queue_service.list_items(self.spec, world.super_admin, ops_area="Czech")
        assert _ids(items) == {seeded["czech_pending"].id}
        items, total = queue_service.list_items(self.spec, world.super_admin, limit=1, offset=1)
        assert total == 3
        assert len(items) == 1

    def test_moves_visible_to_target_reviewer(self, engine, world):
        move = engine.create("inventory_move", world.field, {
            "source_ops_area": "Tuscany",
            "target_ops_area": "Czech",
            "lines": [{"sku": "TENT-01", "qty": 1}],
        }).item
        items, _ = queue_service.list_items(FAMILIES["inventory_move"], world.opx_czech)
        assert _ids(items) == {move.id}

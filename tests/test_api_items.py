"""
Workflow Items & Queues API tests.

Test blocks:
  1. Authentication (missing / malformed / expired token, inactive actor)
  2. Create + read + list
  3. Transitions and their error mapping (403 / 409 / 422 / 500)
  4. Comments, history, available events
  5. Work queues
"""

import pytest

from fieldops.models import db
from fieldops.models.equipment import EquipmentRequest
from fieldops.services.jwt_service import generate_access_token

BASE = "/api/v1/items"


@pytest.fixture()
def created(client, world, auth_headers, request_payload):
    res = client.post(f"{BASE}/equipment_request", json=request_payload(), headers=auth_headers(world.field))
    assert res.status_code == 201
    return res.get_json()["item"]


def _transition(client, headers, item_id, event_type, payload=None, family="equipment_request", **extra):
    body = {"event_type": event_type, "payload": payload or {}}
    body.update(extra)
    return client.post(f"{BASE}/{family}/{item_id}/transitions", json=body, headers=headers)


# ═════════════════════════════════════════════════════════════════════════════
# 1. Authentication
# ═════════════════════════════════════════════════════════════════════════════


class TestAuthentication:

    def test_missing_token(self, client, world):
        res = client.get(f"{BASE}/equipment_request")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_malformed_token(self, client, world):
        res = client.get(f"{BASE}/equipment_request", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_expired_token(self, client, world):
        token = generate_access_token(world.field.id, expires_in=-60)
        res = client.get(f"{BASE}/equipment_request", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_inactive_actor(self, client, world, factory, auth_headers):
        ghost = factory.user("field_staff", is_active=False)
        res = client.get(f"{BASE}/equipment_request", headers=auth_headers(ghost))
        assert res.status_code == 401

    def test_request_id_echoed(self, client, world, auth_headers):
        res = client.get(f"{BASE}/equipment_request",
                         headers={**auth_headers(world.field), "X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in res.headers


# ═════════════════════════════════════════════════════════════════════════════
# 2. Create / read / list
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateAndRead:

    def test_create(self, client, world, auth_headers, request_payload):
        res = client.post(f"{BASE}/equipment_request", json=request_payload(), headers=auth_headers(world.field))
        assert res.status_code == 201
        data = res.get_json()
        assert data["item"]["status"] == "pending_opx"
        assert data["item"]["hub"] == "Italy Hub"
        assert len(data["item"]["line_items"]) == 2
        assert data["event"]["event_type"] == "created"

    def test_create_requires_object_body(self, client, world, auth_headers):
        res = client.post(f"{BASE}/equipment_request", json=[1, 2], headers=auth_headers(world.field))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_create_invalid_payload(self, client, world, auth_headers, request_payload):
        res = client.post(f"{BASE}/equipment_request", json=request_payload(quantity=0),
                          headers=auth_headers(world.field))
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert body["details"] == {"line_items[0].quantity": "must be a positive integer"}

    def test_create_in_unbound_area(self, client, world, auth_headers, request_payload):
        res = client.post(f"{BASE}/equipment_request", json=request_payload(ops_area="Atlantis"),
                          headers=auth_headers(world.field))
        assert res.status_code == 500
        assert res.get_json()["code"] == "ERR_UNCONFIGURED_AREA"

    def test_create_without_capability(self, client, world, auth_headers, request_payload):
        res = client.post(f"{BASE}/equipment_request", json=request_payload(),
                          headers=auth_headers(world.hub_italy))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_unknown_family(self, client, world, auth_headers):
        res = client.get(f"{BASE}/purchase_order", headers=auth_headers(world.field))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_get_item_visibility(self, client, world, auth_headers, created):
        url = f"{BASE}/equipment_request/{created['id']}"
        assert client.get(url, headers=auth_headers(world.field)).status_code == 200
        assert client.get(url, headers=auth_headers(world.opx_tuscany)).status_code == 200
        assert client.get(url, headers=auth_headers(world.hub_italy)).status_code == 200
        assert client.get(url, headers=auth_headers(world.other_field)).status_code == 403
        assert client.get(url, headers=auth_headers(world.opx_czech)).status_code == 403

    def test_get_missing_item(self, client, world, auth_headers):
        res = client.get(f"{BASE}/equipment_request/nope", headers=auth_headers(world.field))
        assert res.status_code == 404

    def test_list_mine_and_filters(self, client, world, auth_headers, created, request_payload):
        client.post(f"{BASE}/equipment_request", json=request_payload("Czech"), headers=auth_headers(world.other_field))

        res = client.get(f"{BASE}/equipment_request?mine=1", headers=auth_headers(world.field))
        assert res.get_json()["total"] == 1
        assert res.get_json()["items"][0]["id"] == created["id"]

        res = client.get(f"{BASE}/equipment_request?ops_area=Czech", headers=auth_headers(world.super_admin))
        assert res.get_json()["total"] == 1

        res = client.get(f"{BASE}/equipment_request?status=fulfilled", headers=auth_headers(world.super_admin))
        assert res.get_json() == {"items": [], "total": 0}


# ═════════════════════════════════════════════════════════════════════════════
# 3. Transitions
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitions:

    def test_full_happy_path(self, client, world, auth_headers, created):
        res = _transition(client, auth_headers(world.opx_tuscany), created["id"], "approved", {"note": "ok"})
        assert res.status_code == 200
        data = res.get_json()
        assert data["item"]["status"] == "opx_approved"
        assert data["old_values"]["status"] == "pending_opx"

        res = _transition(client, auth_headers(world.hub_italy), created["id"], "fulfilled")
        assert res.status_code == 200
        assert res.get_json()["item"]["status"] == "fulfilled"

        db.session.expire_all()
        assert db.session.get(EquipmentRequest, created["id"]).status == "fulfilled"

    def test_forbidden(self, client, world, auth_headers, created):
        res = _transition(client, auth_headers(world.opx_czech), created["id"], "approved")
        assert res.status_code == 403
        db.session.expire_all()
        assert db.session.get(EquipmentRequest, created["id"]).status == "pending_opx"

    def test_illegal_transition(self, client, world, auth_headers, created):
        res = _transition(client, auth_headers(world.hub_italy), created["id"], "fulfilled")
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_ILLEGAL_TRANSITION"
        assert body["details"] == {"status": "pending_opx", "event_type": "fulfilled"}

    def test_conflict_on_stale_expected_status(self, client, world, auth_headers, created):
        res = _transition(client, auth_headers(world.super_admin), created["id"], "fulfilled",
                          expected_status="opx_approved")
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_rejection_without_note(self, client, world, auth_headers, created):
        res = _transition(client, auth_headers(world.opx_tuscany), created["id"], "rejected")
        assert res.status_code == 422
        assert res.get_json()["details"] == {"note": "required"}

    def test_missing_event_type(self, client, world, auth_headers, created):
        res = client.post(f"{BASE}/equipment_request/{created['id']}/transitions",
                          json={}, headers=auth_headers(world.opx_tuscany))
        assert res.status_code == 400

    def test_payload_must_be_object(self, client, world, auth_headers, created):
        res = client.post(f"{BASE}/equipment_request/{created['id']}/transitions",
                          json={"event_type": "approved", "payload": ["x"]},
                          headers=auth_headers(world.opx_tuscany))
        assert res.status_code == 422

    def test_body_must_be_object(self, client, world, auth_headers, created):
        res = client.post(f"{BASE}/equipment_request/{created['id']}/transitions",
                          json=["approved"], headers=auth_headers(world.opx_tuscany))
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_event_type_must_be_string(self, client, world, auth_headers, created):
        res = client.post(f"{BASE}/equipment_request/{created['id']}/transitions",
                          json={"event_type": 7}, headers=auth_headers(world.opx_tuscany))
        assert res.status_code == 422
        assert res.get_json()["details"] == {"event_type": "must be a string"}

    def test_expected_status_must_be_string(self, client, world, auth_headers, created):
        res = _transition(client, auth_headers(world.opx_tuscany), created["id"], "approved",
                          expected_status=["pending_opx"])
        assert res.status_code == 422
        assert res.get_json()["details"] == {"expected_status": "must be a string"}
        db.session.expire_all()
        assert db.session.get(EquipmentRequest, created["id"]).status == "pending_opx"

    def test_non_string_note(self, client, world, auth_headers, created):
        res = _transition(client, auth_headers(world.opx_tuscany), created["id"], "approved",
                          {"note": {"text": "ok"}})
        assert res.status_code == 422
        assert res.get_json()["details"] == {"note": "must be a string"}

    def test_create_with_non_string_text_field(self, client, world, auth_headers):
        res = client.post(f"{BASE}/broken_item_report", json={
            "ops_area": "Tuscany",
            "sku": "TENT-01",
            "description": "torn",
            "location_name": {"shelf": 3},
        }, headers=auth_headers(world.field))
        assert res.status_code == 422
        assert res.get_json()["details"] == {"location_name": "must be a string"}

    def test_cycle_count_transition(self, client, world, auth_headers):
        res = client.post(f"{BASE}/cycle_count", json={
            "ops_area": "Czech",
            "location_name": "Prague",
            "lines": [{"sku": "RADIO-02", "recorded_qty": 3}],
        }, headers=auth_headers(world.field))
        count_id = res.get_json()["item"]["id"]

        res = _transition(client, auth_headers(world.opx_czech), count_id, "validated", family="cycle_count")
        assert res.status_code == 200
        assert res.get_json()["item"]["validated_by"] == world.opx_czech.id


# ═════════════════════════════════════════════════════════════════════════════
# 4. Comments / history / available events
# ═════════════════════════════════════════════════════════════════════════════


class TestHistory:

    def test_comment_and_history(self, client, world, auth_headers, created):
        url = f"{BASE}/equipment_request/{created['id']}"
        res = client.post(f"{url}/comments", json={"note": "urgent please"}, headers=auth_headers(world.field))
        assert res.status_code == 201
        _transition(client, auth_headers(world.opx_tuscany), created["id"], "approved")

        res = client.get(f"{url}/events", headers=auth_headers(world.opx_tuscany))
        events = res.get_json()
        assert [e["event_type"] for e in events] == ["created", "comment", "approved"]
        assert [e["actor_email"] for e in events] == [
            "field@fieldops.test", "field@fieldops.test", "opx.tuscany@fieldops.test",
        ]

    def test_comment_errors(self, client, world, auth_headers, created):
        url = f"{BASE}/equipment_request/{created['id']}/comments"
        assert client.post(url, json={"note": ""}, headers=auth_headers(world.field)).status_code == 422
        assert client.post(url, json={"note": "hi"}, headers=auth_headers(world.other_field)).status_code == 403
        assert client.post(url, json=["hi"], headers=auth_headers(world.field)).status_code == 422
        assert client.post(url, json={"note": 5}, headers=auth_headers(world.field)).status_code == 422

    def test_history_hidden_from_strangers(self, client, world, auth_headers, created):
        res = client.get(f"{BASE}/equipment_request/{created['id']}/events", headers=auth_headers(world.other_field))
        assert res.status_code == 403

    def test_available_events(self, client, world, auth_headers, created):
        url = f"{BASE}/equipment_request/{created['id']}/available-events"
        res = client.get(url, headers=auth_headers(world.opx_tuscany))
        assert res.get_json() == {"status": "pending_opx", "events": ["approved", "rejected"]}
        res = client.get(url, headers=auth_headers(world.field))
        assert res.get_json()["events"] == []


# ═════════════════════════════════════════════════════════════════════════════
# 5. Queues
# ═════════════════════════════════════════════════════════════════════════════


class TestQueuesApi:

    def test_review_and_hub_queues(self, client, world, auth_headers, created):
        res = client.get("/api/v1/queues/review", headers=auth_headers(world.opx_tuscany))
        assert [r["id"] for r in res.get_json()["equipment_requests"]] == [created["id"]]

        res = client.get("/api/v1/queues/hub", headers=auth_headers(world.hub_italy))
        assert res.get_json() == []

        _transition(client, auth_headers(world.opx_tuscany), created["id"], "approved")
        res = client.get("/api/v1/queues/hub", headers=auth_headers(world.hub_italy))
        assert [r["id"] for r in res.get_json()] == [created["id"]]

    def test_stale_reviews(self, client, world, auth_headers, created):
        res = client.get("/api/v1/queues/stale-reviews", headers=auth_headers(world.opx_tuscany))
        assert res.status_code == 200
        assert res.get_json() == {"threshold_hours": 24, "items": []}

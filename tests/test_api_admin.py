"""
Administration, Notifications, Photos & Health API tests.

Test blocks:
  1. Bindings (list / set / remove) and admin-only access
  2. User scope: areas, hubs, roles
  3. Global settings
  4. Notification endpoints
  5. Photo upload
  6. Health check
"""

import io

import pytest

from fieldops.models.scope import OpsAreaHub
from fieldops.services import scope_store
from fieldops.services.collaborators import LocalPhotoStore
from fieldops.services.notification import NotificationService

ADMIN = "/api/v1/admin"


# ═════════════════════════════════════════════════════════════════════════════
# 1. Bindings
# ═════════════════════════════════════════════════════════════════════════════


class TestBindingsApi:

    def test_list_bindings(self, client, world, auth_headers):
        res = client.get(f"{ADMIN}/bindings", headers=auth_headers(world.admin))
        assert res.status_code == 200
        assert res.get_json() == [
            {"ops_area": "Czech", "hub": "Central Hub"},
            {"ops_area": "Tuscany", "hub": "Italy Hub"},
        ]

    def test_non_admin_forbidden(self, client, world, auth_headers):
        res = client.get(f"{ADMIN}/bindings", headers=auth_headers(world.opx_tuscany))
        assert res.status_code == 403
        res = client.put(f"{ADMIN}/bindings/Umbria", json={"hub": "Italy Hub"}, headers=auth_headers(world.field))
        assert res.status_code == 403

    def test_set_and_remove_binding(self, client, world, auth_headers):
        res = client.put(f"{ADMIN}/bindings/Umbria", json={"hub": "Italy Hub"}, headers=auth_headers(world.admin))
        assert res.status_code == 200
        assert res.get_json() == {"ops_area": "Umbria", "hub": "Italy Hub"}
        assert scope_store.hub_for("Umbria") == "Italy Hub"

        res = client.delete(f"{ADMIN}/bindings/Umbria", headers=auth_headers(world.admin))
        assert res.status_code == 200
        assert OpsAreaHub.query.filter_by(ops_area="Umbria").count() == 0

        res = client.delete(f"{ADMIN}/bindings/Umbria", headers=auth_headers(world.admin))
        assert res.status_code == 404

    def test_set_binding_requires_hub(self, client, world, auth_headers):
        res = client.put(f"{ADMIN}/bindings/Umbria", json={}, headers=auth_headers(world.admin))
        assert res.status_code == 422
        assert res.get_json()["details"] == {"hub": "required"}


# ═════════════════════════════════════════════════════════════════════════════
# 2. User scope
# ═════════════════════════════════════════════════════════════════════════════


class TestUserScopeApi:

    def test_get_user_with_capabilities(self, client, world, auth_headers):
        res = client.get(f"{ADMIN}/users/{world.opx_tuscany.id}", headers=auth_headers(world.admin))
        data = res.get_json()
        assert data["roles"] == ["opx"]
        assert data["capabilities"]["reviewable_areas"] == ["Tuscany"]

        res = client.get(f"{ADMIN}/users/{world.super_admin.id}", headers=auth_headers(world.admin))
        assert res.get_json()["capabilities"]["reviewable_areas"] == "*"

    def test_get_missing_user(self, client, world, auth_headers):
        assert client.get(f"{ADMIN}/users/99999", headers=auth_headers(world.admin)).status_code == 404

    def test_assign_and_revoke_area(self, client, world, auth_headers):
        uid = world.opx_unassigned.id
        res = client.post(f"{ADMIN}/users/{uid}/areas", json={"ops_area": "Czech"}, headers=auth_headers(world.admin))
        assert res.status_code == 201
        assert res.get_json()["is_active"] is True

        res = client.delete(f"{ADMIN}/users/{uid}/areas/Czech", headers=auth_headers(world.admin))
        assert res.get_json() == {"revoked": 1}

    def test_assign_unbound_area(self, client, world, auth_headers):
        res = client.post(f"{ADMIN}/users/{world.opx_unassigned.id}/areas", json={"ops_area": "Atlantis"},
                          headers=auth_headers(world.admin))
        assert res.status_code == 500
        assert res.get_json()["code"] == "ERR_UNCONFIGURED_AREA"

    def test_assign_hub(self, client, world, auth_headers):
        res = client.post(f"{ADMIN}/users/{world.hub_italy.id}/hubs", json={"hub": "Central Hub"},
                          headers=auth_headers(world.admin))
        assert res.status_code == 201
        res = client.delete(f"{ADMIN}/users/{world.hub_italy.id}/hubs/Central%20Hub", headers=auth_headers(world.admin))
        assert res.get_json() == {"revoked": 1}

    def test_roles(self, client, world, auth_headers):
        uid = world.field.id
        res = client.post(f"{ADMIN}/users/{uid}/roles", json={"role": "tps"}, headers=auth_headers(world.admin))
        assert res.status_code == 201
        assert res.get_json()["role"] == "tps"

        res = client.post(f"{ADMIN}/users/{uid}/roles", json={"role": "super_admin"}, headers=auth_headers(world.admin))
        assert res.status_code == 403

        res = client.post(f"{ADMIN}/users/{uid}/roles", json={"role": "wizard"}, headers=auth_headers(world.admin))
        assert res.status_code == 422

        res = client.delete(f"{ADMIN}/users/{uid}/roles/tps", headers=auth_headers(world.admin))
        assert res.get_json() == {"revoked": "tps"}


# ═════════════════════════════════════════════════════════════════════════════
# 3. Settings
# ═════════════════════════════════════════════════════════════════════════════


class TestSettingsApi:

    def test_read_defaults(self, client, world, auth_headers):
        res = client.get(f"{ADMIN}/settings", headers=auth_headers(world.admin))
        assert res.get_json() == {"opx_reminder_hours": 24}

    def test_update(self, client, world, auth_headers):
        res = client.put(f"{ADMIN}/settings/opx_reminder_hours", json={"value": 8}, headers=auth_headers(world.admin))
        assert res.status_code == 200
        assert res.get_json()["value"] == 8
        assert scope_store.get_setting("opx_reminder_hours") == 8

    @pytest.mark.parametrize("key,value", [("opx_reminder_hours", -1), ("unknown_key", 1)])
    def test_invalid(self, client, world, auth_headers, key, value):
        res = client.put(f"{ADMIN}/settings/{key}", json={"value": value}, headers=auth_headers(world.admin))
        assert res.status_code == 422


# ═════════════════════════════════════════════════════════════════════════════
# 4. Notifications
# ═════════════════════════════════════════════════════════════════════════════


class TestNotificationApi:

    BASE = "/api/v1/notifications"

    def test_list_count_and_read(self, client, world, auth_headers):
        first = NotificationService.notify(world.field.id, "One")
        NotificationService.notify(world.field.id, "Two")
        headers = auth_headers(world.field)

        res = client.get(self.BASE, headers=headers)
        assert res.get_json()["total"] == 2
        assert client.get(f"{self.BASE}/unread-count", headers=headers).get_json() == {"unread_count": 2}

        res = client.post(f"{self.BASE}/{first.id}/read", headers=headers)
        assert res.get_json()["read"] is True
        res = client.get(f"{self.BASE}?unread_only=1", headers=headers)
        assert [n["title"] for n in res.get_json()["items"]] == ["Two"]

        res = client.post(f"{self.BASE}/read-all", headers=headers)
        assert res.get_json() == {"marked_read": 1}

    def test_cannot_read_others(self, client, world, auth_headers):
        notif = NotificationService.notify(world.field.id, "Private")
        res = client.post(f"{self.BASE}/{notif.id}/read", headers=auth_headers(world.other_field))
        assert res.status_code == 403
        res = client.post(f"{self.BASE}/99999/read", headers=auth_headers(world.other_field))
        assert res.status_code == 404

    def test_transition_creates_notification(self, client, world, auth_headers, request_payload):
        res = client.post("/api/v1/items/equipment_request", json=request_payload(),
                          headers=auth_headers(world.field))
        item_id = res.get_json()["item"]["id"]
        client.post(f"/api/v1/items/equipment_request/{item_id}/transitions",
                    json={"event_type": "rejected", "payload": {"note": "over allocation"}},
                    headers=auth_headers(world.opx_tuscany))

        items = client.get(self.BASE, headers=auth_headers(world.field)).get_json()["items"]
        assert len(items) == 1
        assert items[0]["title"] == "Request Rejected by OPX"
        assert items[0]["item_id"] == item_id


# ═════════════════════════════════════════════════════════════════════════════
# 5. Photos
# ═════════════════════════════════════════════════════════════════════════════


class TestPhotoApi:

    URL = "/api/v1/photos"

    @pytest.fixture()
    def store(self, app, tmp_path, monkeypatch):
        monkeypatch.setitem(app.extensions, "photo_store", LocalPhotoStore(str(tmp_path)))
        return tmp_path

    def test_upload(self, client, world, auth_headers, store):
        res = client.post(self.URL, data={"file": (io.BytesIO(b"\xff\xd8jpeg"), "crack.JPG")},
                          content_type="multipart/form-data", headers=auth_headers(world.field))
        assert res.status_code == 201
        path = res.get_json()["path"]
        assert path.startswith("photos/") and path.endswith(".jpg")
        assert (store / path).read_bytes() == b"\xff\xd8jpeg"

    def test_rejects_unsupported_type(self, client, world, auth_headers, store):
        res = client.post(self.URL, data={"file": (io.BytesIO(b"MZ"), "tool.exe")},
                          content_type="multipart/form-data", headers=auth_headers(world.field))
        assert res.status_code == 422
        assert "file" in res.get_json()["details"]

    def test_requires_file(self, client, world, auth_headers, store):
        res = client.post(self.URL, data={}, content_type="multipart/form-data", headers=auth_headers(world.field))
        assert res.status_code == 400

    def test_requires_auth(self, client, world, store):
        res = client.post(self.URL, data={"file": (io.BytesIO(b"x"), "a.png")}, content_type="multipart/form-data")
        assert res.status_code == 401


# ═════════════════════════════════════════════════════════════════════════════
# 6. Health
# ═════════════════════════════════════════════════════════════════════════════


class TestHealth:

    def test_health_needs_no_token(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "ok"
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["scope_bindings"] == {"status": "warning", "bound_areas": 0}

    def test_health_counts_bound_areas(self, client, world):
        body = client.get("/api/v1/health").get_json()
        assert body["checks"]["scope_bindings"]["status"] == "ok"
        assert body["checks"]["scope_bindings"]["bound_areas"] == 2

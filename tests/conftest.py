"""
Shared pytest fixtures for the Field Ops Workflow Core test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - world: two bound operating areas, a catalog and one actor per role
    - engine: WorkflowEngine wired with recording collaborators
    - auth_headers: Bearer header factory for API tests
"""

from types import SimpleNamespace

import pytest

from fieldops import create_app
from fieldops.models import db as _db
from fieldops.models.auth import User, UserRole
from fieldops.models.equipment import EquipmentItem
from fieldops.models.scope import HubAdminAssignment, OpsAreaHub, OpxAreaAssignment
from fieldops.services import scope_store
from fieldops.services.collaborators import EmailSender, InventorySync
from fieldops.services.jwt_service import generate_access_token
from fieldops.services.notification import NotificationDispatcher
from fieldops.services.workflow_engine import WorkflowEngine
from fieldops.services.workflow_families import FAMILIES, notification_rules


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        # DB is recreated per test; clear the binding cache so no binding
        # from a previous test survives.
        scope_store.invalidate_cache()
        yield
        scope_store.invalidate_cache()
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────

_seq = iter(range(1, 99999))


def make_user(*roles, email=None, is_active=True):
    n = next(_seq)
    user = User(email=email or f"user{n}@fieldops.test", full_name=f"User {n}", is_active=is_active)
    user.user_roles = [UserRole(role=r) for r in roles]
    _db.session.add(user)
    _db.session.commit()
    return user


def bind(ops_area, hub):
    row = OpsAreaHub(ops_area=ops_area, hub=hub)
    _db.session.add(row)
    _db.session.commit()
    scope_store.invalidate_cache()
    return row


def give_area(user, ops_area):
    row = OpxAreaAssignment(user_id=user.id, ops_area=ops_area)
    _db.session.add(row)
    _db.session.commit()
    return row


def give_hub(user, hub):
    row = HubAdminAssignment(user_id=user.id, hub=hub)
    _db.session.add(row)
    _db.session.commit()
    return row


def make_catalog_item(sku, name=None, is_active=True):
    item = EquipmentItem(sku=sku, name=name or sku, category="general", is_active=is_active)
    _db.session.add(item)
    _db.session.commit()
    return item


@pytest.fixture()
def world():
    """Tuscany → Italy Hub, Czech → Central Hub, plus one actor per role."""
    bind("Tuscany", "Italy Hub")
    bind("Czech", "Central Hub")

    w = SimpleNamespace()
    w.tent = make_catalog_item("TENT-01", "Tent")
    w.radio = make_catalog_item("RADIO-02", "Radio")
    w.retired = make_catalog_item("OLD-99", "Retired", is_active=False)

    w.field = make_user("field_staff", email="field@fieldops.test")
    w.other_field = make_user("field_staff", email="other@fieldops.test")
    w.opx_tuscany = make_user("opx", email="opx.tuscany@fieldops.test")
    give_area(w.opx_tuscany, "Tuscany")
    w.opx_czech = make_user("opx", email="opx.czech@fieldops.test")
    give_area(w.opx_czech, "Czech")
    w.opx_unassigned = make_user("opx", email="opx.none@fieldops.test")
    w.hub_italy = make_user("hub_admin", email="hub.italy@fieldops.test")
    give_hub(w.hub_italy, "Italy Hub")
    w.hub_central = make_user("hub_admin", email="hub.central@fieldops.test")
    give_hub(w.hub_central, "Central Hub")
    w.admin = make_user("admin", email="admin@fieldops.test")
    w.super_admin = make_user("super_admin", email="root@fieldops.test")
    return w


# ── Engine with recording collaborators ──────────────────────────────────


class RecordingSync(InventorySync):
    def __init__(self):
        self.calls = []

    def sync(self, family, item_id):
        self.calls.append((family, item_id))


class RecordingEmail(EmailSender):
    def __init__(self):
        self.sent = []

    def send_email(self, template, recipient, data):
        self.sent.append((template, recipient, data))


@pytest.fixture()
def inventory_sync():
    return RecordingSync()


@pytest.fixture()
def email_sender():
    return RecordingEmail()


@pytest.fixture()
def engine(inventory_sync, email_sender):
    dispatcher = NotificationDispatcher(
        notification_rules(FAMILIES), email_sender=email_sender, send_email=False,
    )
    return WorkflowEngine(FAMILIES, dispatcher=dispatcher, inventory_sync=inventory_sync)


# ── Payload helpers ──────────────────────────────────────────────────────


@pytest.fixture()
def request_payload(world):
    def _payload(ops_area="Tuscany", quantity=2, **extra):
        payload = {
            "ops_area": ops_area,
            "required_by_date": "2026-11-01",
            "notes": "for the new site",
            "line_items": [
                {"equipment_id": world.tent.id, "quantity": quantity, "reason": "site setup"},
                {"sku": world.radio.sku, "quantity": 1},
            ],
        }
        payload.update(extra)
        return payload
    return _payload


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id)}"}
    return _headers


@pytest.fixture()
def factory():
    """Row factories for tests that need more than ``world``."""
    return SimpleNamespace(
        user=make_user,
        bind=bind,
        give_area=give_area,
        give_hub=give_hub,
        catalog_item=make_catalog_item,
    )

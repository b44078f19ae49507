"""
Field Ops Workflow Core
Flask Application Factory.

Usage:
    from fieldops import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")

The factory wires extensions, middleware and blueprints, then builds one
WorkflowEngine (with its notification dispatcher and collaborators) and
publishes it as ``app.extensions["workflow_engine"]``.
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import event as sa_event
from sqlalchemy.engine import Engine

from fieldops.config import config
from fieldops.models import db
from fieldops.middleware.jwt_auth import init_jwt_middleware
from fieldops.middleware.logging_config import configure_logging
from fieldops.middleware.rate_limiter import init_rate_limits
from fieldops.middleware.timing import init_request_timing
from fieldops.utils.errors import E, api_error

logger = logging.getLogger(__name__)

migrate = Migrate()
# No global limit; per-blueprint limits are applied in init_rate_limits
limiter = Limiter(key_func=get_remote_address, default_limits=[])


@sa_event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    """SQLite ignores FK constraints unless asked per connection."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _import_models():
    # Registers every table on db.metadata for create_all / Alembic
    from fieldops.models import (  # noqa: F401
        audit,
        auth,
        cycle_count,
        equipment,
        equipment_health,
        inventory,
        notification,
        scope,
    )


def _init_workflow(app):
    """Build the engine and its collaborators once per app."""
    from fieldops.services.collaborators import (
        LocalPhotoStore,
        LoggingEmailSender,
        NoOpInventorySync,
    )
    from fieldops.services.notification import NotificationDispatcher
    from fieldops.services.workflow_engine import WorkflowEngine
    from fieldops.services.workflow_families import FAMILIES, notification_rules

    dispatcher = NotificationDispatcher(
        notification_rules(FAMILIES),
        email_sender=LoggingEmailSender(),
        send_email=app.config.get("NOTIFY_BY_EMAIL", False),
    )
    app.extensions["workflow_engine"] = WorkflowEngine(
        FAMILIES,
        dispatcher=dispatcher,
        inventory_sync=NoOpInventorySync(),
    )
    app.extensions["photo_store"] = LocalPhotoStore(app.config["UPLOAD_FOLDER"])


def _register_blueprints(app):
    from fieldops.blueprints.admin_bp import admin_bp
    from fieldops.blueprints.health_bp import health_bp
    from fieldops.blueprints.items_bp import items_bp
    from fieldops.blueprints.notification_bp import notification_bp
    from fieldops.blueprints.photo_bp import photo_bp
    from fieldops.blueprints.queues_bp import queues_bp

    for bp in (health_bp, items_bp, queues_bp, notification_bp, admin_bp, photo_bp):
        app.register_blueprint(bp)


def _register_error_handlers(app):
    """HTTP-level errors not raised by the workflow services."""

    @app.errorhandler(401)
    def unauthorized(e):
        return api_error(E.UNAUTHORIZED, "Authentication required")

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, f"No route for {request.path}")

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def _register_cli(app):

    @app.cli.command("create-user")
    @click.argument("email")
    @click.option("--name", default="", help="Full name")
    @click.option("--role", "roles", multiple=True, help="Role to grant (repeatable)")
    def create_user_cmd(email, name, roles):
        """Create an actor with the given roles (bootstrap a super_admin)."""
        from fieldops.models.auth import APP_ROLES, User, UserRole

        unknown = set(roles) - APP_ROLES
        if unknown:
            raise click.BadParameter(f"unknown roles: {', '.join(sorted(unknown))}")
        user = User(email=email, full_name=name or None)
        user.user_roles = [UserRole(role=r) for r in roles]
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created user {user.id} ({email}) roles={sorted(roles)}")

    @app.cli.command("issue-token")
    @click.argument("user_id", type=int)
    def issue_token_cmd(user_id):
        """Print an access token for USER_ID (local development)."""
        from fieldops.services.jwt_service import generate_access_token

        click.echo(generate_access_token(user_id))


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production".
                     Defaults to the APP_ENV env var, then "development".
    """
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    origins = app.config.get("CORS_ORIGINS", "*")
    if origins and origins != "*":
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Middleware (order: request id/timer first, then auth) ────────────
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Schema ───────────────────────────────────────────────────────────
    _import_models()
    with app.app_context():
        db.create_all()

    _init_workflow(app)
    _register_blueprints(app)
    _register_cli(app)
    _register_error_handlers(app)

    # Needs the registered blueprints
    init_rate_limits(app, limiter)

    logger.debug("Application created (config=%s)", config_name)
    return app

"""Workflow core: actors, scope, workflow families, audit events, notifications

Revision ID: a1b2c3d4e501
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "a1b2c3d4e501"
down_revision = None
branch_labels = None
depends_on = None


def _item_columns():
    """Columns shared by every workflow family table."""
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("status", sa.String(30), nullable=False, index=True),
        sa.Column("ops_area", sa.String(100), nullable=False, index=True),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    # ── Actors ───────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(200), nullable=False, unique=True),
        sa.Column("full_name", sa.String(200)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("granted_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "role", name="uq_user_role"),
    )

    # ── Scope ────────────────────────────────────────────────────────────
    op.create_table(
        "ops_area_to_hub",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ops_area", sa.String(100), nullable=False, unique=True),
        sa.Column("hub", sa.String(100), nullable=False, index=True),
        sa.Column("updated_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "opx_area_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("ops_area", sa.String(100), nullable=False),
        sa.Column("assigned_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("revoked_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_opx_assignment_user_area", "opx_area_assignments", ["user_id", "ops_area"])
    op.create_table(
        "hub_admin_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("hub", sa.String(100), nullable=False),
        sa.Column("assigned_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("revoked_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_hub_assignment_user_hub", "hub_admin_assignments", ["user_id", "hub"])
    op.create_table(
        "app_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(100), nullable=False, unique=True),
        sa.Column("value", sa.JSON()),
        sa.Column("updated_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ── Catalog ──────────────────────────────────────────────────────────
    op.create_table(
        "equipment_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sku", sa.String(64), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("category", sa.String(100)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ── Equipment requests ───────────────────────────────────────────────
    op.create_table(
        "equipment_requests",
        *_item_columns(),
        sa.Column("hub", sa.String(100), nullable=False, index=True),
        sa.Column("required_by_date", sa.Date()),
        sa.Column("notes", sa.Text(), server_default=""),
        sa.Column("opx_reviewed_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("opx_reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("opx_notes", sa.Text()),
        sa.Column("decline_reason", sa.Text()),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True)),
        sa.Column("declined_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "equipment_request_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("request_id", sa.String(36), sa.ForeignKey("equipment_requests.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("equipment_id", sa.Integer(), sa.ForeignKey("equipment_items.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), server_default=""),
        sa.Column("approval_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("original_quantity", sa.Integer()),
        sa.Column("modified_by_opx", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("decline_reason", sa.Text()),
    )

    # ── Cycle counts ─────────────────────────────────────────────────────
    op.create_table(
        "cycle_counts",
        *_item_columns(),
        sa.Column("location_name", sa.String(200), nullable=False),
        sa.Column("validated_at", sa.DateTime(timezone=True)),
        sa.Column("validated_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("rejection_note", sa.Text()),
    )
    op.create_table(
        "cycle_count_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cycle_count_id", sa.String(36), sa.ForeignKey("cycle_counts.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("equipment_item_id", sa.Integer(), sa.ForeignKey("equipment_items.id", ondelete="SET NULL")),
        sa.Column("recorded_qty", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), server_default=""),
        sa.Column("photo_path", sa.String(500)),
    )

    # ── Equipment health ─────────────────────────────────────────────────
    op.create_table(
        "broken_item_reports",
        *_item_columns(),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("equipment_item_id", sa.Integer(), sa.ForeignKey("equipment_items.id", ondelete="SET NULL")),
        sa.Column("location_name", sa.String(200)),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("photo_path", sa.String(500)),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "maintenance_records",
        *_item_columns(),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("equipment_item_id", sa.Integer(), sa.ForeignKey("equipment_items.id", ondelete="SET NULL")),
        sa.Column("maintenance_type", sa.String(100), nullable=False),
        sa.Column("notes", sa.Text(), server_default=""),
        sa.Column("photo_path", sa.String(500)),
        sa.Column("broken_item_report_id", sa.String(36), sa.ForeignKey("broken_item_reports.id", ondelete="SET NULL")),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )

    # ── Inventory moves ──────────────────────────────────────────────────
    op.create_table(
        "inventory_moves",
        *_item_columns(),
        sa.Column("source_location_name", sa.String(200)),
        sa.Column("target_ops_area", sa.String(100), nullable=False, index=True),
        sa.Column("target_location_name", sa.String(200)),
        sa.Column("notes", sa.Text(), server_default=""),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "inventory_move_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("move_id", sa.String(36), sa.ForeignKey("inventory_moves.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("equipment_item_id", sa.Integer(), sa.ForeignKey("equipment_items.id", ondelete="SET NULL")),
        sa.Column("qty", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), server_default=""),
    )

    # ── Audit + notifications ────────────────────────────────────────────
    op.create_table(
        "workflow_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("family", sa.String(30), nullable=False),
        sa.Column("item_id", sa.String(36), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("event_notes", sa.Text()),
        sa.Column("old_values", sa.JSON()),
        sa.Column("new_values", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_workflow_event_item", "workflow_events", ["family", "item_id", "created_at"])
    op.create_index("idx_workflow_event_actor", "workflow_events", ["actor_user_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("message", sa.Text(), server_default=""),
        sa.Column("type", sa.String(20), nullable=False, server_default="info"),
        sa.Column("link", sa.String(300)),
        sa.Column("family", sa.String(30)),
        sa.Column("item_id", sa.String(36)),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("idx_notification_user_read", "notifications", ["user_id", "read"])


def downgrade():
    op.drop_index("idx_notification_user_read", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("idx_workflow_event_actor", table_name="workflow_events")
    op.drop_index("idx_workflow_event_item", table_name="workflow_events")
    op.drop_table("workflow_events")
    op.drop_table("inventory_move_lines")
    op.drop_table("inventory_moves")
    op.drop_table("maintenance_records")
    op.drop_table("broken_item_reports")
    op.drop_table("cycle_count_lines")
    op.drop_table("cycle_counts")
    op.drop_table("equipment_request_line_items")
    op.drop_table("equipment_requests")
    op.drop_table("equipment_items")
    op.drop_table("app_settings")
    op.drop_index("ix_hub_assignment_user_hub", table_name="hub_admin_assignments")
    op.drop_table("hub_admin_assignments")
    op.drop_index("ix_opx_assignment_user_area", table_name="opx_area_assignments")
    op.drop_table("opx_area_assignments")
    op.drop_table("ops_area_to_hub")
    op.drop_table("user_roles")
    op.drop_table("users")

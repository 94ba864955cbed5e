"""clients import schema

Revision ID: 20260101120000
Revises:
Create Date: 2026-01-01 12:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20260101120000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

APPOINTMENT_DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def upgrade() -> None:
    """Create staff, clients and audit_log tables."""
    # Create staff table
    op.create_table(
        "staff",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("admin", "staff", name="staff_role"),
            nullable=False,
            server_default="staff",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_staff")),
        sa.UniqueConstraint("email", name=op.f("uq_staff_email")),
    )

    # Create clients table
    op.create_table(
        "clients",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("barcode_id", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("family_size", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("num_children", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("children_ages", sa.Text(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column(
            "appointment_day",
            sa.Enum(*APPOINTMENT_DAYS, name="appointment_day"),
            nullable=True,
        ),
        sa.Column("appointment_time", sa.Time(), nullable=True),
        sa.Column("pref_gluten_free", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pref_halal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pref_vegetarian", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pref_no_cooking", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_clients")),
        sa.UniqueConstraint("barcode_id", name=op.f("uq_clients_barcode_id")),
        sa.ForeignKeyConstraint(
            ["created_by"],
            ["staff.id"],
            name=op.f("fk_clients_created_by_staff"),
        ),
    )
    op.create_index(op.f("ix_clients_name"), "clients", ["name"], unique=False)
    op.create_index(
        "ix_clients_appointment",
        "clients",
        ["appointment_day", "appointment_time"],
        unique=False,
    )

    # Create audit_log table
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("table_name", sa.String(length=50), nullable=False),
        sa.Column("record_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("changed_by", sa.Uuid(), nullable=False),
        sa.Column("changed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_audit_log")),
        sa.ForeignKeyConstraint(
            ["changed_by"],
            ["staff.id"],
            name=op.f("fk_audit_log_changed_by_staff"),
        ),
    )
    op.create_index(
        "ix_audit_log_table_record", "audit_log", ["table_name", "record_id"], unique=False
    )
    op.create_index("ix_audit_log_changed_at", "audit_log", ["changed_at"], unique=False)


def downgrade() -> None:
    """Drop staff, clients and audit_log tables."""
    op.drop_index("ix_audit_log_changed_at", table_name="audit_log")
    op.drop_index("ix_audit_log_table_record", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_clients_appointment", table_name="clients")
    op.drop_index(op.f("ix_clients_name"), table_name="clients")
    op.drop_table("clients")
    op.drop_table("staff")

    bind = op.get_bind()
    sa.Enum(name="appointment_day").drop(bind, checkfirst=True)
    sa.Enum(name="staff_role").drop(bind, checkfirst=True)

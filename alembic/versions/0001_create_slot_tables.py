"""create slot accounts, slots and slot history

Revision ID: 0001_create_slot_tables
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_create_slot_tables"
down_revision = None
branch_labels = None
depends_on = None

SLOT_STATES = ("FREE", "ASSIGNED", "INACTIVE", "SUSPENDED", "RECLAIMED")
HISTORY_ACTIONS = ("ASSIGNED", "RELEASED", "UPDATED", "DELETED", "CREDENTIAL_ROTATED")


def upgrade():
    op.create_table(
        "slot_accounts",
        sa.Column("account_id", sa.Uuid(), primary_key=True),
        sa.Column("label", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("label", name="uq_slot_accounts_label"),
    )

    op.create_table(
        "slots",
        sa.Column("slot_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "account_id",
            sa.Uuid(),
            sa.ForeignKey("slot_accounts.account_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(length=50), nullable=False),
        sa.Column("credential", sa.String(length=50), nullable=False),
        sa.Column("state", sa.Enum(*SLOT_STATES, name="slot_state"), nullable=False),
        sa.Column("customer_id", sa.Uuid(), nullable=True),
        sa.Column("assigned_by", sa.String(length=255), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("activates_at", sa.Date(), nullable=True),
        sa.Column("expires_at", sa.Date(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("plan_tag", sa.String(length=50), nullable=True),
        sa.Column("has_add_on", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("account_id", "position", name="uq_slots_account_position"),
        # customer_id is set exactly when the slot is ASSIGNED
        sa.CheckConstraint(
            "(state = 'ASSIGNED') = (customer_id IS NOT NULL)",
            name="ck_slots_customer_iff_assigned",
        ),
    )
    op.create_index("ix_slots_state_customer", "slots", ["state", "customer_id"])
    op.create_index("ix_slots_customer", "slots", ["customer_id"])

    op.create_table(
        "slot_history",
        sa.Column("entry_id", sa.Uuid(), primary_key=True),
        sa.Column("slot_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.Enum(*HISTORY_ACTIONS, name="slot_history_action"), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_slot_history_slot_created", "slot_history", ["slot_id", "created_at"])


def downgrade():
    op.drop_index("ix_slot_history_slot_created", table_name="slot_history")
    op.drop_table("slot_history")
    op.drop_index("ix_slots_customer", table_name="slots")
    op.drop_index("ix_slots_state_customer", table_name="slots")
    op.drop_table("slots")
    op.drop_table("slot_accounts")
    sa.Enum(name="slot_history_action").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="slot_state").drop(op.get_bind(), checkfirst=True)

#slot_engine\infrastructure\postgres\models.py
"""SQLAlchemy ORM models for database tables."""

from uuid import uuid4

from sqlalchemy import (
    Column, String, Integer, Date, DateTime, JSON, Enum as SQLEnum, Index, Text, Boolean,
    CheckConstraint, ForeignKey, UniqueConstraint, Uuid,
)

from slot_engine.core.models import HistoryAction, SlotState, utcnow
from slot_engine.infrastructure.postgres.database import Base


# ============================================
# ACCOUNTS
# ============================================

class SlotAccountORM(Base):
    """
    Account table - one row per batch of slots.

    The unique label is what settles concurrent pool growth.
    """

    __tablename__ = "slot_accounts"

    account_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    label = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("label", name="uq_slot_accounts_label"),
    )

    def __repr__(self) -> str:
        return f"<SlotAccountORM(account_id={self.account_id}, label={self.label})>"


# ============================================
# SLOTS
# ============================================

class SlotORM(Base):
    """
    Slot table - one assignable unit inside an account.

    Indexes:
    - Unique (account_id, position)
    - Composite index on (state, customer_id) for candidate lookup
    - Index on customer_id for release
    """

    __tablename__ = "slots"

    slot_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    account_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("slot_accounts.account_id", ondelete="CASCADE"),
        nullable=False,
    )
    position = Column(Integer, nullable=False)
    display_name = Column(String(50), nullable=False)
    credential = Column(String(50), nullable=False)

    # State
    state = Column(
        SQLEnum(SlotState, name="slot_state"),
        nullable=False,
        default=SlotState.FREE,
    )
    customer_id = Column(Uuid(as_uuid=True), nullable=True)

    # Assignment metadata
    assigned_by = Column(String(255), nullable=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    activates_at = Column(Date, nullable=True)
    expires_at = Column(Date, nullable=True)
    note = Column(Text, nullable=True)
    plan_tag = Column(String(50), nullable=True)
    has_add_on = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("account_id", "position", name="uq_slots_account_position"),
        CheckConstraint(
            "(state = 'ASSIGNED') = (customer_id IS NOT NULL)",
            name="ck_slots_customer_iff_assigned",
        ),
        Index("ix_slots_state_customer", "state", "customer_id"),
        Index("ix_slots_customer", "customer_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<SlotORM(slot_id={self.slot_id}, "
            f"state={self.state.value}, "
            f"customer_id={self.customer_id})>"
        )


# ============================================
# SLOT HISTORY
# ============================================

class SlotHistoryORM(Base):
    """Append-only slot audit log (slot_id is not a foreign key)."""

    __tablename__ = "slot_history"

    entry_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    slot_id = Column(Uuid(as_uuid=True), nullable=False)
    action = Column(SQLEnum(HistoryAction, name="slot_history_action"), nullable=False)
    entry_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_slot_history_slot_created", "slot_id", "created_at"),
    )

"""Core domain models (slot pool)."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4


class SlotState(Enum):
    """Slot lifecycle states."""

    FREE = "FREE"
    ASSIGNED = "ASSIGNED"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"
    RECLAIMED = "RECLAIMED"


# States a slot without a customer may be handed out from
ASSIGNABLE_STATES = frozenset({SlotState.FREE, SlotState.RECLAIMED})


class HistoryAction(Enum):
    """Actions recorded in the slot history log."""

    ASSIGNED = "ASSIGNED"
    RELEASED = "RELEASED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    CREDENTIAL_ROTATED = "CREDENTIAL_ROTATED"


class ReservationOutcome(Enum):
    """Result of a conditional slot reservation."""

    RESERVED = "RESERVED"
    CONFLICT = "CONFLICT"


class AccountCreation(Enum):
    """Result of trying to mint a new account batch."""

    CREATED = "CREATED"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    UNAVAILABLE = "UNAVAILABLE"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Account:
    """A fixed-capacity bucket of slots, named by its pool label."""

    account_id: UUID
    label: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class SlotAssignment:
    """Customer and sale metadata written onto a slot when it is reserved."""

    customer_id: UUID
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    activates_at: Optional[date] = None
    expires_at: Optional[date] = None
    note: Optional[str] = None
    plan_tag: Optional[str] = None
    has_add_on: Optional[bool] = None

    def with_defaults(self) -> "SlotAssignment":
        """Fill assigned_at with now and activates_at with today when omitted."""
        now = utcnow()
        return replace(
            self,
            assigned_at=self.assigned_at or now,
            activates_at=self.activates_at or now.date(),
        )

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe view used as history metadata."""
        return {
            "customer_id": str(self.customer_id),
            "assigned_by": self.assigned_by,
            "assigned_at": self.assigned_at.isoformat() if self.assigned_at else None,
            "activates_at": self.activates_at.isoformat() if self.activates_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "note": self.note,
            "plan_tag": self.plan_tag,
            "has_add_on": self.has_add_on,
        }


@dataclass
class Slot:
    """Slot domain model with assignment transitions."""

    # Identity
    slot_id: UUID
    account_id: UUID
    position: int
    display_name: str

    # Secret handed to the customer
    credential: str

    # State
    state: SlotState = SlotState.FREE
    customer_id: Optional[UUID] = None

    # Assignment metadata
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    activates_at: Optional[date] = None
    expires_at: Optional[date] = None
    note: Optional[str] = None
    plan_tag: Optional[str] = None
    has_add_on: Optional[bool] = None

    # Owning account label (read views only)
    account_label: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    # -------------------------
    # STATE TRANSITIONS
    # -------------------------

    def is_assignable(self) -> bool:
        """Check if slot can be handed to a customer."""
        return self.state in ASSIGNABLE_STATES and self.customer_id is None

    def assign(self, assignment: SlotAssignment, credential: str) -> None:
        """Bind a customer to this slot (FREE/RECLAIMED -> ASSIGNED)."""
        if not self.is_assignable():
            raise ValueError(f"Cannot assign slot in {self.state.value} state")

        self.state = SlotState.ASSIGNED
        self.customer_id = assignment.customer_id
        self.credential = credential
        self.assigned_by = assignment.assigned_by
        self.assigned_at = assignment.assigned_at
        self.activates_at = assignment.activates_at
        self.expires_at = assignment.expires_at
        self.note = assignment.note
        self.plan_tag = assignment.plan_tag
        self.has_add_on = assignment.has_add_on
        self.updated_at = utcnow()

    def release(self, credential: str) -> None:
        """Scrub customer data and rotate the credential (-> RECLAIMED)."""
        self.state = SlotState.RECLAIMED
        self.customer_id = None
        self.credential = credential
        self.assigned_by = None
        self.assigned_at = None
        self.activates_at = None
        self.expires_at = None
        self.note = None
        self.plan_tag = None
        self.has_add_on = None
        self.updated_at = utcnow()


# Fields an operator may edit on an assigned slot
EDITABLE_SLOT_FIELDS = frozenset({
    "assigned_by",
    "activates_at",
    "expires_at",
    "note",
    "plan_tag",
    "has_add_on",
})


@dataclass
class Reservation:
    """Tagged result of SlotRepository.try_reserve."""

    outcome: ReservationOutcome
    slot: Optional[Slot] = None

    @property
    def reserved(self) -> bool:
        return self.outcome == ReservationOutcome.RESERVED

    @staticmethod
    def won(slot: Slot) -> "Reservation":
        return Reservation(outcome=ReservationOutcome.RESERVED, slot=slot)

    @staticmethod
    def lost() -> "Reservation":
        return Reservation(outcome=ReservationOutcome.CONFLICT)


@dataclass
class SlotHistoryEntry:
    """Append-only audit record of a slot mutation."""

    slot_id: UUID
    action: HistoryAction
    metadata: Dict[str, Any] = field(default_factory=dict)
    entry_id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)

    @staticmethod
    def slot_assigned(slot_id: UUID, assignment: SlotAssignment) -> "SlotHistoryEntry":
        return SlotHistoryEntry(
            slot_id=slot_id,
            action=HistoryAction.ASSIGNED,
            metadata=assignment.snapshot(),
        )

    @staticmethod
    def slot_released(slot_id: UUID, customer_id: Optional[UUID], reason: str) -> "SlotHistoryEntry":
        return SlotHistoryEntry(
            slot_id=slot_id,
            action=HistoryAction.RELEASED,
            metadata={
                "customer_id": str(customer_id) if customer_id else None,
                "reason": reason,
            },
        )

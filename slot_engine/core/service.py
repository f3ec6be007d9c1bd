"""Slot service - entry point for subscription workflows."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from slot_engine.core.allocator import SlotAllocator
from slot_engine.core.credentials import generate_numeric_credential
from slot_engine.core.errors import (
    SlotNotFound,
    SlotPoolUnavailable,
    SlotValidationError,
)
from slot_engine.core.history import HistoryRecorder, NullHistoryRecorder
from slot_engine.core.labels import AccountLabelCodec
from slot_engine.core.models import (
    EDITABLE_SLOT_FIELDS,
    Account,
    HistoryAction,
    Slot,
    SlotAssignment,
    SlotHistoryEntry,
    SlotState,
)
from slot_engine.core.releaser import SlotReleaser
from slot_engine.core.repository import SlotRepository

logger = logging.getLogger(__name__)


@dataclass
class PoolOverview:
    """Slot counts per state."""

    accounts: int
    by_state: Dict[SlotState, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.by_state.values())

    @property
    def assignable(self) -> int:
        return self.by_state.get(SlotState.FREE, 0) + self.by_state.get(SlotState.RECLAIMED, 0)


class SlotService:
    """Slot pool operations exposed to callers."""

    def __init__(
        self,
        repository: SlotRepository,
        allocator: SlotAllocator,
        releaser: SlotReleaser,
        codec: AccountLabelCodec,
        history: Optional[HistoryRecorder] = None,
        max_bulk_quantity: int = 50,
        credential_length: int = 4,
    ):
        self._repo = repository
        self._allocator = allocator
        self._releaser = releaser
        self._codec = codec
        self._history = history or NullHistoryRecorder()
        self._max_bulk_quantity = max_bulk_quantity
        self._credential_length = credential_length

    # -------------------------
    # ASSIGN
    # -------------------------

    def assign_slot(self, assignment: SlotAssignment) -> Slot:
        return self._allocator.assign_slot(assignment)

    def assign_slots(self, assignment: SlotAssignment, quantity: int) -> List[Slot]:
        """Assign several slots to one customer (not atomic as a group)."""
        if quantity < 1:
            raise SlotValidationError("Quantity must be at least 1")

        if quantity > self._max_bulk_quantity:
            raise SlotValidationError(
                f"At most {self._max_bulk_quantity} slots can be assigned at once"
            )

        return self._allocator.assign_slots(assignment, quantity)

    # -------------------------
    # RELEASE
    # -------------------------

    def release_slots_for_customer(self, customer_id: UUID) -> List[Slot]:
        return self._releaser.release_slots_for_customer(customer_id)

    def release_slot(self, slot_id: UUID) -> Slot:
        return self._releaser.release_slot(slot_id)

    # -------------------------
    # EDIT
    # -------------------------

    def regenerate_credential(self, slot_id: UUID) -> Slot:
        """Rotate the credential of one slot."""
        slot = self._repo.update_credential(slot_id, self._new_credential())
        if slot is None:
            raise SlotNotFound(f"Slot {slot_id} not found")

        self._history.append(slot_id, HistoryAction.CREDENTIAL_ROTATED, {})
        return slot

    def update_slot(self, slot_id: UUID, changes: Dict[str, Any]) -> Slot:
        """
        Edit assignment metadata of an assigned slot.

        Only fields in EDITABLE_SLOT_FIELDS may be changed; state and
        customer are owned by the allocator and releaser.
        """
        unknown = set(changes) - EDITABLE_SLOT_FIELDS
        if unknown:
            raise SlotValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        current = self._repo.get_slot(slot_id)
        if current is None:
            raise SlotNotFound(f"Slot {slot_id} not found")

        if current.state != SlotState.ASSIGNED:
            raise SlotValidationError(
                f"Only assigned slots can be edited (current: {current.state.value})"
            )

        if not changes:
            return current

        slot = self._repo.update_details(
            slot_id,
            changes,
            expected_customer_id=current.customer_id,
        )
        if slot is None:
            raise SlotValidationError(f"Slot {slot_id} changed hands while being edited")

        self._history.append(slot_id, HistoryAction.UPDATED, _json_safe(changes))
        return slot

    # -------------------------
    # READ
    # -------------------------

    def count_free_slots(self) -> int:
        return self._repo.count_assignable_slots()

    def slot_history(self, slot_id: UUID) -> List[SlotHistoryEntry]:
        try:
            return self._repo.list_history(slot_id)
        except SlotPoolUnavailable:
            return []

    def list_accounts(self) -> List[Tuple[Account, List[Slot]]]:
        """Accounts with their slots, pool accounts first by batch index."""
        accounts = sorted(self._repo.list_accounts(), key=self._account_sort_key)
        return [
            (account, self._repo.list_slots_for_account(account.account_id))
            for account in accounts
        ]

    def pool_overview(self) -> PoolOverview:
        by_state = {state: 0 for state in SlotState}
        by_state.update(self._repo.count_by_state())
        return PoolOverview(accounts=len(self._repo.list_account_labels()), by_state=by_state)

    # -------------------------
    # MAINTENANCE
    # -------------------------

    def ensure_pool_ready(self) -> Slot:
        """Make sure at least one assignable slot exists."""
        return self._allocator.find_or_create_free_slot()

    def rotate_all_credentials(self) -> int:
        """
        Rotate credentials of every slot not held by a customer.

        Slots assigned after the listing keep the credential their customer
        was given.
        """
        rotated = 0
        for slot_id in self._repo.list_unassigned_slot_ids():
            try:
                rotated_slot = self._repo.update_credential(
                    slot_id,
                    self._new_credential(),
                    only_unassigned=True,
                )
                if rotated_slot is not None:
                    rotated += 1
            except SlotPoolUnavailable:
                raise
            except Exception as e:
                logger.error(f"[service] failed to rotate credential of slot {slot_id}: {e}")

        logger.info(f"[service] rotated {rotated} credential(s)")
        return rotated

    # -------------------------
    # INTERNAL HELPERS
    # -------------------------

    def _new_credential(self) -> str:
        return generate_numeric_credential(self._credential_length)

    def _account_sort_key(self, account: Account):
        index = self._codec.index_for_label(account.label)
        return (index is None, index if index is not None else 0, account.label)


def _json_safe(changes: Dict[str, Any]) -> Dict[str, Any]:
    safe = {}
    for key, value in changes.items():
        safe[key] = value.isoformat() if hasattr(value, "isoformat") else value
    return safe

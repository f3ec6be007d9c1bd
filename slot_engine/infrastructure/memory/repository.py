# slot_engine/infrastructure/memory/repository.py

from collections import Counter
from dataclasses import replace
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from slot_engine.core.repository import SlotRepository
from slot_engine.core.models import (
    Account,
    Reservation,
    Slot,
    SlotAssignment,
    SlotHistoryEntry,
    SlotState,
    utcnow,
)
from slot_engine.core.errors import (
    AccountAlreadyExists,
    SlotPoolUnavailable,
)


class InMemorySlotRepository(SlotRepository):
    """
    Thread-safe in-process store.

    Reads return copies so callers never observe later mutations, the
    same way rows fetched from the database behave.
    """

    def __init__(self):
        self._accounts: dict[UUID, Account] = {}
        self._labels: dict[str, UUID] = {}
        self._slots: dict[UUID, Slot] = {}
        self._history: list[SlotHistoryEntry] = []
        self._lock = Lock()
        self.schema_present = True

    def _require_schema(self) -> None:
        if not self.schema_present:
            raise SlotPoolUnavailable("Slot tables are not present")

    def _view(self, slot: Slot) -> Slot:
        account = self._accounts[slot.account_id]
        return replace(slot, account_label=account.label)

    # -------------------------
    # ACCOUNTS
    # -------------------------

    def list_account_labels(self) -> List[str]:
        self._require_schema()
        with self._lock:
            return list(self._labels)

    def list_accounts(self) -> List[Account]:
        self._require_schema()
        with self._lock:
            return [replace(a) for a in self._accounts.values()]

    def create_account(self, account: Account, slots: Iterable[Slot]) -> None:
        self._require_schema()
        slots = list(slots)
        with self._lock:
            if account.label in self._labels:
                raise AccountAlreadyExists(f"Account {account.label} already exists")

            self._accounts[account.account_id] = replace(account)
            self._labels[account.label] = account.account_id
            for slot in slots:
                self._slots[slot.slot_id] = replace(slot, account_label=None)

    # -------------------------
    # SLOTS
    # -------------------------

    def get_slot(self, slot_id: UUID) -> Optional[Slot]:
        self._require_schema()
        with self._lock:
            slot = self._slots.get(slot_id)
            return self._view(slot) if slot else None

    def list_assignable_slots(self) -> List[Slot]:
        self._require_schema()
        with self._lock:
            return [self._view(s) for s in self._slots.values() if s.is_assignable()]

    def count_assignable_slots(self) -> int:
        self._require_schema()
        with self._lock:
            return sum(1 for s in self._slots.values() if s.is_assignable())

    def list_slots_for_customer(self, customer_id: UUID) -> List[Slot]:
        self._require_schema()
        with self._lock:
            return [self._view(s) for s in self._slots.values() if s.customer_id == customer_id]

    def list_slots_for_account(self, account_id: UUID) -> List[Slot]:
        self._require_schema()
        with self._lock:
            slots = [self._view(s) for s in self._slots.values() if s.account_id == account_id]
        return sorted(slots, key=lambda s: s.position)

    def list_unassigned_slot_ids(self) -> List[UUID]:
        self._require_schema()
        with self._lock:
            return [s.slot_id for s in self._slots.values() if s.customer_id is None]

    def count_by_state(self) -> Dict[SlotState, int]:
        self._require_schema()
        with self._lock:
            return dict(Counter(s.state for s in self._slots.values()))

    def try_reserve(
        self,
        slot_id: UUID,
        assignment: SlotAssignment,
        credential: str,
    ) -> Reservation:
        self._require_schema()
        with self._lock:
            slot = self._slots.get(slot_id)
            if not slot or not slot.is_assignable():
                return Reservation.lost()

            slot.assign(assignment, credential)
            return Reservation.won(self._view(slot))

    def release(
        self,
        slot_id: UUID,
        credential: str,
        expected_customer_id: Optional[UUID] = None,
    ) -> Optional[Slot]:
        self._require_schema()
        with self._lock:
            slot = self._slots.get(slot_id)
            if not slot:
                return None

            if expected_customer_id is not None and slot.customer_id != expected_customer_id:
                return None

            slot.release(credential)
            return self._view(slot)

    def update_credential(
        self,
        slot_id: UUID,
        credential: str,
        only_unassigned: bool = False,
    ) -> Optional[Slot]:
        self._require_schema()
        with self._lock:
            slot = self._slots.get(slot_id)
            if not slot:
                return None

            if only_unassigned and slot.customer_id is not None:
                return None

            slot.credential = credential
            slot.updated_at = utcnow()
            return self._view(slot)

    def update_details(
        self,
        slot_id: UUID,
        changes: Dict[str, Any],
        expected_customer_id: Optional[UUID] = None,
    ) -> Optional[Slot]:
        self._require_schema()
        with self._lock:
            slot = self._slots.get(slot_id)
            if not slot or slot.state != SlotState.ASSIGNED:
                return None

            if expected_customer_id is not None and slot.customer_id != expected_customer_id:
                return None

            for key, value in changes.items():
                setattr(slot, key, value)
            slot.updated_at = utcnow()
            return self._view(slot)

    # -------------------------
    # HISTORY
    # -------------------------

    def append_history(self, entry: SlotHistoryEntry) -> None:
        self._require_schema()
        with self._lock:
            self._history.append(replace(entry, metadata=dict(entry.metadata)))

    def list_history(self, slot_id: UUID) -> List[SlotHistoryEntry]:
        self._require_schema()
        with self._lock:
            entries = [e for e in self._history if e.slot_id == slot_id]
        return list(reversed(entries))

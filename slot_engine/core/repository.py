# slot_engine/core/repository.py

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from slot_engine.core.models import (
    Account,
    Reservation,
    Slot,
    SlotAssignment,
    SlotHistoryEntry,
    SlotState,
)


class SlotRepository(ABC):
    """
    Persistence contract for accounts, slots and slot history.

    Any method raises SlotPoolUnavailable when the backing tables are missing.
    """

    # -------------------------
    # ACCOUNTS
    # -------------------------

    @abstractmethod
    def list_account_labels(self) -> List[str]:
        """Labels of every account, pool-generated or not."""
        raise NotImplementedError

    @abstractmethod
    def list_accounts(self) -> List[Account]:
        raise NotImplementedError

    @abstractmethod
    def create_account(self, account: Account, slots: Iterable[Slot]) -> None:
        """
        Persist an account together with its slots.
        Must raise AccountAlreadyExists if the label is taken,
        and must not leave the account behind if slot insertion fails.
        """
        raise NotImplementedError

    # -------------------------
    # SLOTS
    # -------------------------

    @abstractmethod
    def get_slot(self, slot_id: UUID) -> Optional[Slot]:
        raise NotImplementedError

    @abstractmethod
    def list_assignable_slots(self) -> List[Slot]:
        """
        Slots with no customer in an assignable state, with account_label set.
        Ordering is left to the caller.
        """
        raise NotImplementedError

    @abstractmethod
    def count_assignable_slots(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def list_slots_for_customer(self, customer_id: UUID) -> List[Slot]:
        raise NotImplementedError

    @abstractmethod
    def list_slots_for_account(self, account_id: UUID) -> List[Slot]:
        """Slots of one account ordered by position."""
        raise NotImplementedError

    @abstractmethod
    def list_unassigned_slot_ids(self) -> List[UUID]:
        raise NotImplementedError

    @abstractmethod
    def count_by_state(self) -> Dict[SlotState, int]:
        raise NotImplementedError

    @abstractmethod
    def try_reserve(
        self,
        slot_id: UUID,
        assignment: SlotAssignment,
        credential: str,
    ) -> Reservation:
        """
        Atomically assign the slot iff it is still assignable and has no customer.
        Returns a CONFLICT reservation when zero rows matched.
        """
        raise NotImplementedError

    @abstractmethod
    def release(
        self,
        slot_id: UUID,
        credential: str,
        expected_customer_id: Optional[UUID] = None,
    ) -> Optional[Slot]:
        """
        Scrub assignment data, rotate credential and mark the slot RECLAIMED.
        With expected_customer_id the update only applies while that customer
        still holds the slot. Returns None when no row was updated.
        """
        raise NotImplementedError

    @abstractmethod
    def update_credential(
        self,
        slot_id: UUID,
        credential: str,
        only_unassigned: bool = False,
    ) -> Optional[Slot]:
        """
        Replace the credential. With only_unassigned the update only applies
        while no customer holds the slot. Returns None when no row was updated.
        """
        raise NotImplementedError

    @abstractmethod
    def update_details(
        self,
        slot_id: UUID,
        changes: Dict[str, Any],
        expected_customer_id: Optional[UUID] = None,
    ) -> Optional[Slot]:
        """
        Update metadata fields of a slot that is currently ASSIGNED, and with
        expected_customer_id only while that customer still holds it.
        """
        raise NotImplementedError

    # -------------------------
    # HISTORY
    # -------------------------

    @abstractmethod
    def append_history(self, entry: SlotHistoryEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_history(self, slot_id: UUID) -> List[SlotHistoryEntry]:
        """History of one slot, newest first."""
        raise NotImplementedError

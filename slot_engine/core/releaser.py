"""Slot releaser - returns customer slots to the pool."""

import logging
from typing import Callable, List, Optional
from uuid import UUID

from slot_engine.core.credentials import generate_numeric_credential
from slot_engine.core.errors import SlotNotFound, SlotValidationError
from slot_engine.core.history import HistoryRecorder, NullHistoryRecorder
from slot_engine.core.models import Slot, SlotHistoryEntry, SlotState
from slot_engine.core.repository import SlotRepository

logger = logging.getLogger(__name__)

REASON_SERVICE_REMOVED = "SERVICE_REMOVED"
REASON_MANUAL = "MANUAL"


class SlotReleaser:
    """Reclaims slots: clears customer data, rotates the credential, marks RECLAIMED."""

    def __init__(
        self,
        repository: SlotRepository,
        history: Optional[HistoryRecorder] = None,
        credential_factory: Callable[[], str] = generate_numeric_credential,
    ):
        self._repo = repository
        self._history = history or NullHistoryRecorder()
        self._new_credential = credential_factory

    def release_slots_for_customer(self, customer_id: UUID) -> List[Slot]:
        """
        Release every slot held by customer_id.

        Idempotent: a customer without slots is a no-op.
        Returns the slots that were actually released.
        """
        released = []

        for slot in self._repo.list_slots_for_customer(customer_id):
            result = self._repo.release(
                slot.slot_id,
                self._new_credential(),
                expected_customer_id=customer_id,
            )

            # Customer lost the slot between the read and the update
            if result is None:
                continue

            self._history.record(
                SlotHistoryEntry.slot_released(slot.slot_id, customer_id, REASON_SERVICE_REMOVED)
            )
            released.append(result)

        if released:
            logger.info(f"[releaser] released {len(released)} slot(s) of customer {customer_id}")

        return released

    def release_slot(self, slot_id: UUID) -> Slot:
        """
        Release a single assigned slot by id, whoever holds it.

        Slots that are not ASSIGNED (free, reclaimed, or held INACTIVE or
        SUSPENDED by an operator) are rejected and left untouched.
        """
        current = self._repo.get_slot(slot_id)
        if current is None:
            raise SlotNotFound(f"Slot {slot_id} not found")

        if current.state != SlotState.ASSIGNED:
            raise SlotValidationError(
                f"Only assigned slots can be released (current: {current.state.value})"
            )

        result = self._repo.release(
            slot_id,
            self._new_credential(),
            expected_customer_id=current.customer_id,
        )
        if result is None:
            raise SlotValidationError(f"Slot {slot_id} changed hands while being released")

        self._history.record(
            SlotHistoryEntry.slot_released(slot_id, current.customer_id, REASON_MANUAL)
        )
        logger.info(f"[releaser] released slot {result.display_name}")
        return result

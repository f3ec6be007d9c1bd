"""Slot allocator - hands out pool slots to customers."""

import logging
import time
from typing import Callable, List, Optional

from slot_engine.core.credentials import generate_numeric_credential
from slot_engine.core.errors import (
    SlotAllocationFailed,
    SlotAllocationTimeout,
    SlotPoolUnavailable,
)
from slot_engine.core.history import HistoryRecorder, NullHistoryRecorder
from slot_engine.core.labels import AccountLabelCodec
from slot_engine.core.models import (
    AccountCreation,
    Slot,
    SlotAssignment,
    SlotHistoryEntry,
    SlotState,
)
from slot_engine.core.pool import PoolGrower
from slot_engine.core.repository import SlotRepository

logger = logging.getLogger(__name__)


class _Deadline:
    """Overall time budget for one allocation call."""

    def __init__(self, timeout_seconds: Optional[float], clock: Callable[[], float]):
        self._clock = clock
        self._expires_at = None if timeout_seconds is None else clock() + timeout_seconds

    def check(self, step: str) -> None:
        if self._expires_at is not None and self._clock() >= self._expires_at:
            raise SlotAllocationTimeout(f"Slot allocation timed out before {step}")

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())


class SlotAllocator:
    """
    Finds or creates a free slot and reserves it for a customer.

    Correctness rests on SlotRepository.try_reserve being an atomic
    compare-and-swap; everything else is re-read from the store on each
    call and a lost race is simply retried.

    Features:
    - Deterministic candidate order so concurrent callers converge
    - Pool growth when no assignable slot exists
    - Bounded retries with linear backoff (100ms, 200ms, ...)
    - Optional overall deadline per call
    """

    def __init__(
        self,
        repository: SlotRepository,
        grower: PoolGrower,
        history: Optional[HistoryRecorder] = None,
        max_attempts: int = 5,
        retry_delay: float = 0.1,
        timeout_seconds: Optional[float] = None,
        prefer_unused_slots: bool = False,
        credential_factory: Callable[[], str] = generate_numeric_credential,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._repo = repository
        self._grower = grower
        self._history = history or NullHistoryRecorder()
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._timeout_seconds = timeout_seconds
        self._prefer_unused = prefer_unused_slots
        self._new_credential = credential_factory
        self._sleep = sleep
        self._clock = clock

    # -------------------------
    # CANDIDATE SELECTION
    # -------------------------

    def candidate_sort_key(self, slot: Slot):
        """
        Total order over candidates: pool accounts by batch index, then
        operator accounts by label, then position, then id.
        """
        codec: AccountLabelCodec = self._grower.codec
        label = slot.account_label or ""
        index = codec.index_for_label(label)
        reused = self._prefer_unused and slot.state == SlotState.RECLAIMED

        return (
            reused,
            index is None,
            index if index is not None else 0,
            label,
            slot.position,
            str(slot.slot_id),
        )

    def pick_candidate(self, slots: List[Slot]) -> Optional[Slot]:
        candidates = [slot for slot in slots if slot.is_assignable()]
        if not candidates:
            return None
        return min(candidates, key=self.candidate_sort_key)

    def find_or_create_free_slot(self, deadline: Optional[_Deadline] = None) -> Slot:
        """
        Return the preferred assignable slot, growing the pool if none exists.

        Raises:
            SlotPoolUnavailable: slot tables are missing
            SlotPoolCapacityReached: pool ceiling reached
            SlotAllocationFailed: retry ceiling hit
        """
        deadline = deadline or self._new_deadline()

        for attempt in range(1, self._max_attempts + 1):
            deadline.check("candidate lookup")
            candidate = self.pick_candidate(self._repo.list_assignable_slots())
            if candidate is not None:
                return candidate

            deadline.check("pool growth")
            outcome = self._grower.grow()

            if outcome == AccountCreation.CREATED:
                continue

            if outcome == AccountCreation.UNAVAILABLE:
                raise SlotPoolUnavailable("Slot pool is unavailable")

            # Another worker created this batch; give it time to land
            logger.debug(f"[allocator] lost pool growth race (attempt {attempt})")
            self._backoff(attempt, deadline)

        # One last look after the final backoff
        deadline.check("candidate lookup")
        candidate = self.pick_candidate(self._repo.list_assignable_slots())
        if candidate is not None:
            return candidate

        raise SlotAllocationFailed(
            f"Could not find or create a free slot after {self._max_attempts} attempts"
        )

    # -------------------------
    # ASSIGN
    # -------------------------

    def assign_slot(self, assignment: SlotAssignment) -> Slot:
        """
        Reserve one slot for the customer in assignment.

        Raises SlotAllocationFailed when every attempt lost its reservation race.
        """
        assignment = assignment.with_defaults()
        deadline = self._new_deadline()

        for attempt in range(1, self._max_attempts + 1):
            candidate = self.find_or_create_free_slot(deadline)

            deadline.check("reservation")
            reservation = self._repo.try_reserve(
                candidate.slot_id,
                assignment,
                self._new_credential(),
            )

            if reservation.reserved:
                slot = reservation.slot
                logger.info(
                    f"[allocator] slot {slot.display_name} ({slot.account_label}) "
                    f"-> customer {assignment.customer_id}"
                )
                self._history.record(
                    SlotHistoryEntry.slot_assigned(slot.slot_id, assignment)
                )
                return slot

            logger.debug(
                f"[allocator] slot {candidate.slot_id} taken concurrently "
                f"(attempt {attempt}/{self._max_attempts})"
            )
            if attempt < self._max_attempts:
                self._backoff(attempt, deadline)

        raise SlotAllocationFailed(
            f"Failed to assign a slot after {self._max_attempts} attempts "
            "(high contention or system error); try again"
        )

    def assign_slots(self, assignment: SlotAssignment, quantity: int) -> List[Slot]:
        """
        Assign quantity slots one by one.

        Not atomic as a group: slots assigned before a failure stay assigned.
        """
        slots = []
        for _ in range(quantity):
            slots.append(self.assign_slot(assignment))
        return slots

    # -------------------------
    # INTERNAL HELPERS
    # -------------------------

    def _new_deadline(self) -> _Deadline:
        return _Deadline(self._timeout_seconds, self._clock)

    def _backoff(self, attempt: int, deadline: _Deadline) -> None:
        """Sleep retry_delay * attempt, never past the deadline."""
        delay = self._retry_delay * attempt
        remaining = deadline.remaining()
        if remaining is not None and delay >= remaining:
            raise SlotAllocationTimeout("Slot allocation timed out while backing off")
        self._sleep(delay)

"""Pool growth - mints new accounts when the pool runs dry."""

import logging
from typing import Callable, Iterable, List, Optional
from uuid import uuid4

from slot_engine.core.credentials import generate_numeric_credential
from slot_engine.core.errors import (
    AccountAlreadyExists,
    SlotPoolCapacityReached,
    SlotPoolUnavailable,
)
from slot_engine.core.labels import AccountLabelCodec
from slot_engine.core.models import Account, AccountCreation, Slot, SlotState
from slot_engine.core.repository import SlotRepository

logger = logging.getLogger(__name__)


class PoolGrower:
    """
    Creates account batches.

    Each batch is one account labelled after its index plus a full
    complement of FREE slots. Concurrent growers may race for the same
    index; the unique label decides the winner and the loser gets
    ALREADY_EXISTS.
    """

    def __init__(
        self,
        repository: SlotRepository,
        codec: AccountLabelCodec,
        max_accounts: Optional[int] = None,
        credential_factory: Callable[[], str] = generate_numeric_credential,
    ):
        self._repo = repository
        self._codec = codec
        self._max_accounts = max_accounts
        self._new_credential = credential_factory

    @property
    def codec(self) -> AccountLabelCodec:
        return self._codec

    def next_batch_index(self, existing_labels: Iterable[str]) -> int:
        """
        Index after the highest pool label found, or 0 for an empty pool.

        Gaps left by failed creations are skipped, never backfilled.
        """
        indexes = [
            index
            for index in (self._codec.index_for_label(label) for label in existing_labels)
            if index is not None
        ]

        next_index = max(indexes) + 1 if indexes else 0

        if self._max_accounts is not None and next_index >= self._max_accounts:
            raise SlotPoolCapacityReached(
                f"Slot pool is full ({self._max_accounts} accounts)"
            )

        return next_index

    def build_batch(self, index: int) -> tuple[Account, List[Slot]]:
        """Build (without persisting) the account and slots for a batch index."""
        account = Account(account_id=uuid4(), label=self._codec.label_for_index(index))

        slots = [
            Slot(
                slot_id=uuid4(),
                account_id=account.account_id,
                position=position,
                display_name=self._codec.display_name(index, position),
                credential=self._new_credential(),
                state=SlotState.FREE,
                account_label=account.label,
            )
            for position in range(1, self._codec.slots_per_account + 1)
        ]

        return account, slots

    def create_account_batch(self, index: int) -> AccountCreation:
        """Persist the batch for index. Never raises for a lost race or missing schema."""
        account, slots = self.build_batch(index)

        try:
            self._repo.create_account(account, slots)
        except AccountAlreadyExists:
            logger.info(f"[pool] account {account.label} already created by another worker")
            return AccountCreation.ALREADY_EXISTS
        except SlotPoolUnavailable as e:
            logger.error(f"[pool] cannot create {account.label}: {e}")
            return AccountCreation.UNAVAILABLE

        logger.info(f"[pool] created account {account.label} with {len(slots)} slots")
        return AccountCreation.CREATED

    def grow(self) -> AccountCreation:
        """Create the batch following the highest existing pool label."""
        index = self.next_batch_index(self._repo.list_account_labels())
        return self.create_account_batch(index)

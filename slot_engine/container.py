#slot_engine\container.py

"""Dependency injection container - wires all services together."""

from functools import partial
from typing import Optional

from slot_engine.core.allocator import SlotAllocator
from slot_engine.core.config import PoolSettings, pool_settings
from slot_engine.core.credentials import generate_numeric_credential
from slot_engine.core.history import RepositoryHistoryRecorder
from slot_engine.core.labels import AccountLabelCodec
from slot_engine.core.pool import PoolGrower
from slot_engine.core.releaser import SlotReleaser
from slot_engine.core.repository import SlotRepository
from slot_engine.core.service import SlotService
from slot_engine.infrastructure.postgres.repository import PostgresSlotRepository


def build_slot_service(
    repository: SlotRepository,
    settings: Optional[PoolSettings] = None,
    **allocator_overrides,
) -> SlotService:
    """Assemble the slot service on top of any repository."""
    settings = settings or pool_settings

    codec = AccountLabelCodec(
        domain=settings.account_domain,
        slots_per_account=settings.slots_per_account,
    )
    history = RepositoryHistoryRecorder(repository)

    new_credential = partial(generate_numeric_credential, settings.credential_length)

    grower = PoolGrower(
        repository=repository,
        codec=codec,
        max_accounts=settings.max_accounts,
        credential_factory=new_credential,
    )

    allocator_options = dict(
        max_attempts=settings.max_attempts,
        retry_delay=settings.retry_delay_seconds,
        timeout_seconds=settings.allocation_timeout_seconds,
        prefer_unused_slots=settings.prefer_unused_slots,
        credential_factory=new_credential,
    )
    allocator_options.update(allocator_overrides)

    allocator = SlotAllocator(
        repository=repository,
        grower=grower,
        history=history,
        **allocator_options,
    )

    releaser = SlotReleaser(
        repository=repository,
        history=history,
        credential_factory=new_credential,
    )

    return SlotService(
        repository=repository,
        allocator=allocator,
        releaser=releaser,
        codec=codec,
        history=history,
        max_bulk_quantity=settings.max_bulk_quantity,
        credential_length=settings.credential_length,
    )


# ============================================
# REPOSITORIES
# ============================================

slot_repository = PostgresSlotRepository()


# ============================================
# SERVICES
# ============================================

slot_service = build_slot_service(slot_repository)

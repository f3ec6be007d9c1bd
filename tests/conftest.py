#tests\conftest.py

"""Pytest configuration and fixtures."""

import pytest
from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from slot_engine.container import build_slot_service
from slot_engine.core.allocator import SlotAllocator
from slot_engine.core.config import PoolSettings
from slot_engine.core.history import RepositoryHistoryRecorder
from slot_engine.core.labels import AccountLabelCodec
from slot_engine.core.models import SlotAssignment
from slot_engine.core.pool import PoolGrower
from slot_engine.core.releaser import SlotReleaser
from slot_engine.infrastructure.memory.repository import InMemorySlotRepository
from slot_engine.infrastructure.postgres.database import get_session_factory, init_db
from slot_engine.infrastructure.postgres.repository import PostgresSlotRepository


DOMAIN = "pool.test"


class RecordingSleep:
    """Stand-in for time.sleep that records requested delays."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def pool_settings():
    """Pool settings isolated from the environment."""
    return PoolSettings(
        account_domain=DOMAIN,
        slots_per_account=8,
        max_accounts=625,
        max_attempts=5,
        retry_delay_ms=100,
        allocation_timeout_seconds=None,
        max_bulk_quantity=50,
        credential_length=4,
        prefer_unused_slots=False,
    )


@pytest.fixture
def codec():
    return AccountLabelCodec(domain=DOMAIN, slots_per_account=8)


@pytest.fixture
def memory_repository():
    """Fresh in-memory repository."""
    return InMemorySlotRepository()


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def grower(memory_repository, codec):
    return PoolGrower(repository=memory_repository, codec=codec, max_accounts=625)


@pytest.fixture
def allocator(memory_repository, grower, fake_sleep):
    """Allocator over the in-memory repository that never really sleeps."""
    return SlotAllocator(
        repository=memory_repository,
        grower=grower,
        history=RepositoryHistoryRecorder(memory_repository),
        max_attempts=5,
        retry_delay=0.1,
        sleep=fake_sleep,
    )


@pytest.fixture
def releaser(memory_repository):
    return SlotReleaser(
        repository=memory_repository,
        history=RepositoryHistoryRecorder(memory_repository),
    )


@pytest.fixture
def service(memory_repository, pool_settings, fake_sleep):
    """Fully wired service over the in-memory repository."""
    return build_slot_service(memory_repository, pool_settings, sleep=fake_sleep)


@pytest.fixture
def assignment():
    """Assignment for a fresh customer with sale metadata."""
    return SlotAssignment(
        customer_id=uuid4(),
        assigned_by="vendor-1",
        note="first subscription",
        plan_tag="ESSENTIAL",
        has_add_on=True,
    )


# ============================================
# SQL repository (SQLite in memory)
# ============================================

@pytest.fixture
def sql_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    yield engine

    engine.dispose()


@pytest.fixture
def sql_repository(sql_engine):
    """Create repository with test database session factory."""
    return PostgresSlotRepository(session_factory=get_session_factory(sql_engine))


@pytest.fixture
def sql_service(sql_repository, pool_settings, fake_sleep):
    return build_slot_service(sql_repository, pool_settings, sleep=fake_sleep)

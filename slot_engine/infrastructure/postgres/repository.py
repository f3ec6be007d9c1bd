#slot_engine\infrastructure\postgres\repository.py

"""PostgreSQL repository implementation using SQLAlchemy."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from slot_engine.core.repository import SlotRepository
from slot_engine.core.models import (
    ASSIGNABLE_STATES,
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
    SlotPersistenceError,
    SlotPoolUnavailable,
)
from slot_engine.infrastructure.postgres.database import get_session_factory
from slot_engine.infrastructure.postgres.models import (
    SlotAccountORM,
    SlotHistoryORM,
    SlotORM,
)

logger = logging.getLogger(__name__)

# undefined_table, undefined_column
SCHEMA_MISSING_PGCODES = {"42P01", "42703"}


def is_schema_missing(error: SQLAlchemyError) -> bool:
    """Tell a missing table/column apart from any other database error."""
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) in SCHEMA_MISSING_PGCODES:
        return True

    message = str(orig if orig is not None else error).lower()
    return "no such table" in message or "no such column" in message


# ============================================
# Mapping Functions
# ============================================

def orm_to_account(orm: SlotAccountORM) -> Account:
    """Convert ORM model to domain model."""
    return Account(
        account_id=orm.account_id,
        label=orm.label,
        created_at=orm.created_at,
    )


def orm_to_slot(orm: SlotORM, account_label: Optional[str] = None) -> Slot:
    """Convert ORM model to domain model."""
    return Slot(
        slot_id=orm.slot_id,
        account_id=orm.account_id,
        position=orm.position,
        display_name=orm.display_name,
        credential=orm.credential,
        state=orm.state,
        customer_id=orm.customer_id,
        assigned_by=orm.assigned_by,
        assigned_at=orm.assigned_at,
        activates_at=orm.activates_at,
        expires_at=orm.expires_at,
        note=orm.note,
        plan_tag=orm.plan_tag,
        has_add_on=orm.has_add_on,
        account_label=account_label,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def slot_to_orm(slot: Slot) -> SlotORM:
    """Convert domain model to ORM model."""
    return SlotORM(
        slot_id=slot.slot_id,
        account_id=slot.account_id,
        position=slot.position,
        display_name=slot.display_name,
        credential=slot.credential,
        state=slot.state,
        customer_id=slot.customer_id,
        assigned_by=slot.assigned_by,
        assigned_at=slot.assigned_at,
        activates_at=slot.activates_at,
        expires_at=slot.expires_at,
        note=slot.note,
        plan_tag=slot.plan_tag,
        has_add_on=slot.has_add_on,
        created_at=slot.created_at,
        updated_at=slot.updated_at,
    )


def orm_to_history(orm: SlotHistoryORM) -> SlotHistoryEntry:
    return SlotHistoryEntry(
        entry_id=orm.entry_id,
        slot_id=orm.slot_id,
        action=orm.action,
        metadata=orm.entry_metadata or {},
        created_at=orm.created_at,
    )


# ============================================
# Repository Implementation
# ============================================

class PostgresSlotRepository(SlotRepository):
    """PostgreSQL implementation using SQLAlchemy with dependency injection."""

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        """
        Initialize repository with optional session factory.

        Args:
            session_factory: SQLAlchemy session factory. If None, uses default production factory.
        """
        self._session_factory = session_factory

    def _get_session(self) -> Session:
        """Get new session from the injected factory."""
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory()

    @contextmanager
    def _session(self, operation: str) -> Generator[Session, None, None]:
        """Session scope translating database errors into slot errors."""
        session = self._get_session()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            if is_schema_missing(e):
                raise SlotPoolUnavailable(f"Slot tables are not available ({operation})") from e
            raise SlotPersistenceError(f"{operation} failed: {e}") from e
        finally:
            session.close()

    def _load_slot(self, session: Session, slot_id: UUID) -> Optional[Slot]:
        row = (
            session.query(SlotORM, SlotAccountORM.label)
            .join(SlotAccountORM, SlotORM.account_id == SlotAccountORM.account_id)
            .filter(SlotORM.slot_id == slot_id)
            .first()
        )
        if row is None:
            return None
        orm, label = row
        return orm_to_slot(orm, label)

    def _slot_query(self, session: Session):
        return session.query(SlotORM, SlotAccountORM.label).join(
            SlotAccountORM, SlotORM.account_id == SlotAccountORM.account_id
        )

    # -------------------------
    # ACCOUNTS
    # -------------------------

    def list_account_labels(self) -> List[str]:
        with self._session("list_account_labels") as session:
            return [label for (label,) in session.query(SlotAccountORM.label).all()]

    def list_accounts(self) -> List[Account]:
        with self._session("list_accounts") as session:
            return [orm_to_account(orm) for orm in session.query(SlotAccountORM).all()]

    def create_account(self, account: Account, slots: Iterable[Slot]) -> None:
        """Insert the account, then its slots, in one transaction."""
        session = self._get_session()
        try:
            session.add(SlotAccountORM(
                account_id=account.account_id,
                label=account.label,
                created_at=account.created_at,
            ))
            # Flush alone so a label conflict is told apart from slot errors
            session.flush()
        except IntegrityError as e:
            session.rollback()
            session.close()
            raise AccountAlreadyExists(f"Account {account.label} already exists") from e
        except SQLAlchemyError as e:
            session.rollback()
            session.close()
            if is_schema_missing(e):
                raise SlotPoolUnavailable("Slot tables are not available (create_account)") from e
            raise SlotPersistenceError(f"Failed to create account: {e}") from e

        try:
            session.add_all([slot_to_orm(slot) for slot in slots])
            session.commit()
            logger.debug(f"[postgres] create_account {account.label} -> done")
        except SQLAlchemyError as e:
            session.rollback()
            if is_schema_missing(e):
                raise SlotPoolUnavailable("Slot tables are not available (create_account)") from e
            raise SlotPersistenceError(f"Failed to create slots for {account.label}: {e}") from e
        finally:
            session.close()

    # -------------------------
    # SLOTS
    # -------------------------

    def get_slot(self, slot_id: UUID) -> Optional[Slot]:
        with self._session("get_slot") as session:
            return self._load_slot(session, slot_id)

    def list_assignable_slots(self) -> List[Slot]:
        with self._session("list_assignable_slots") as session:
            rows = (
                self._slot_query(session)
                .filter(
                    SlotORM.state.in_(list(ASSIGNABLE_STATES)),
                    SlotORM.customer_id.is_(None),
                )
                .order_by(SlotAccountORM.label.asc(), SlotORM.position.asc())
                .all()
            )
            logger.debug(f"[postgres] list_assignable_slots -> {len(rows)} rows")
            return [orm_to_slot(orm, label) for orm, label in rows]

    def count_assignable_slots(self) -> int:
        with self._session("count_assignable_slots") as session:
            return (
                session.query(func.count(SlotORM.slot_id))
                .filter(
                    SlotORM.state.in_(list(ASSIGNABLE_STATES)),
                    SlotORM.customer_id.is_(None),
                )
                .scalar()
            ) or 0

    def list_slots_for_customer(self, customer_id: UUID) -> List[Slot]:
        with self._session("list_slots_for_customer") as session:
            rows = (
                self._slot_query(session)
                .filter(SlotORM.customer_id == customer_id)
                .order_by(SlotAccountORM.label.asc(), SlotORM.position.asc())
                .all()
            )
            return [orm_to_slot(orm, label) for orm, label in rows]

    def list_slots_for_account(self, account_id: UUID) -> List[Slot]:
        with self._session("list_slots_for_account") as session:
            rows = (
                self._slot_query(session)
                .filter(SlotORM.account_id == account_id)
                .order_by(SlotORM.position.asc())
                .all()
            )
            return [orm_to_slot(orm, label) for orm, label in rows]

    def list_unassigned_slot_ids(self) -> List[UUID]:
        with self._session("list_unassigned_slot_ids") as session:
            rows = session.query(SlotORM.slot_id).filter(SlotORM.customer_id.is_(None)).all()
            return [slot_id for (slot_id,) in rows]

    def count_by_state(self) -> Dict[SlotState, int]:
        with self._session("count_by_state") as session:
            rows = (
                session.query(SlotORM.state, func.count(SlotORM.slot_id))
                .group_by(SlotORM.state)
                .all()
            )
            return {state: count for state, count in rows}

    # -------------------------
    # RESERVE (compare-and-swap)
    # -------------------------

    def try_reserve(
        self,
        slot_id: UUID,
        assignment: SlotAssignment,
        credential: str,
    ) -> Reservation:
        """Single conditional UPDATE; zero affected rows means another caller won."""
        with self._session("try_reserve") as session:
            result = session.execute(
                update(SlotORM)
                .where(
                    SlotORM.slot_id == slot_id,
                    SlotORM.state.in_(list(ASSIGNABLE_STATES)),
                    SlotORM.customer_id.is_(None),
                )
                .values(
                    state=SlotState.ASSIGNED,
                    customer_id=assignment.customer_id,
                    credential=credential,
                    assigned_by=assignment.assigned_by,
                    assigned_at=assignment.assigned_at,
                    activates_at=assignment.activates_at,
                    expires_at=assignment.expires_at,
                    note=assignment.note,
                    plan_tag=assignment.plan_tag,
                    has_add_on=assignment.has_add_on,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                session.rollback()
                logger.debug(f"[postgres] try_reserve {slot_id} -> conflict")
                return Reservation.lost()

            session.commit()
            logger.debug(f"[postgres] try_reserve {slot_id} -> reserved")
            return Reservation.won(self._load_slot(session, slot_id))

    # -------------------------
    # RELEASE / EDIT
    # -------------------------

    def release(
        self,
        slot_id: UUID,
        credential: str,
        expected_customer_id: Optional[UUID] = None,
    ) -> Optional[Slot]:
        with self._session("release") as session:
            conditions = [SlotORM.slot_id == slot_id]
            if expected_customer_id is not None:
                conditions.append(SlotORM.customer_id == expected_customer_id)

            result = session.execute(
                update(SlotORM)
                .where(*conditions)
                .values(
                    state=SlotState.RECLAIMED,
                    customer_id=None,
                    credential=credential,
                    assigned_by=None,
                    assigned_at=None,
                    activates_at=None,
                    expires_at=None,
                    note=None,
                    plan_tag=None,
                    has_add_on=None,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                session.rollback()
                return None

            session.commit()
            return self._load_slot(session, slot_id)

    def update_credential(
        self,
        slot_id: UUID,
        credential: str,
        only_unassigned: bool = False,
    ) -> Optional[Slot]:
        with self._session("update_credential") as session:
            conditions = [SlotORM.slot_id == slot_id]
            if only_unassigned:
                conditions.append(SlotORM.customer_id.is_(None))

            result = session.execute(
                update(SlotORM)
                .where(*conditions)
                .values(credential=credential, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                session.rollback()
                return None

            session.commit()
            return self._load_slot(session, slot_id)

    def update_details(
        self,
        slot_id: UUID,
        changes: Dict[str, Any],
        expected_customer_id: Optional[UUID] = None,
    ) -> Optional[Slot]:
        with self._session("update_details") as session:
            conditions = [
                SlotORM.slot_id == slot_id,
                SlotORM.state == SlotState.ASSIGNED,
            ]
            if expected_customer_id is not None:
                conditions.append(SlotORM.customer_id == expected_customer_id)

            result = session.execute(
                update(SlotORM)
                .where(*conditions)
                .values(**changes, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                session.rollback()
                return None

            session.commit()
            return self._load_slot(session, slot_id)

    # -------------------------
    # HISTORY
    # -------------------------

    def append_history(self, entry: SlotHistoryEntry) -> None:
        with self._session("append_history") as session:
            session.add(SlotHistoryORM(
                entry_id=entry.entry_id,
                slot_id=entry.slot_id,
                action=entry.action,
                entry_metadata=entry.metadata,
                created_at=entry.created_at,
            ))
            session.commit()

    def list_history(self, slot_id: UUID) -> List[SlotHistoryEntry]:
        with self._session("list_history") as session:
            rows = (
                session.query(SlotHistoryORM)
                .filter(SlotHistoryORM.slot_id == slot_id)
                .order_by(SlotHistoryORM.created_at.desc())
                .all()
            )
            return [orm_to_history(orm) for orm in rows]

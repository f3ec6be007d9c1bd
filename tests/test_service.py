"""Test slot service workflows."""

from datetime import date
from uuid import uuid4

import pytest

from slot_engine.container import build_slot_service
from slot_engine.core.errors import (
    SlotNotFound,
    SlotPoolUnavailable,
    SlotValidationError,
)
from slot_engine.core.models import Account, HistoryAction, SlotAssignment, SlotState
from slot_engine.infrastructure.memory.repository import InMemorySlotRepository


@pytest.fixture(params=["memory", "sql"])
def any_service(request):
    """Service wired over each repository backend."""
    if request.param == "memory":
        return request.getfixturevalue("service")
    return request.getfixturevalue("sql_service")


class TestAssignWorkflow:
    """End-to-end assignment scenarios."""

    def test_ten_slots_for_one_customer(self, any_service, assignment):
        """Ten slots on an empty pool grow it to two accounts."""
        slots = any_service.assign_slots(assignment, 10)

        assert len({s.slot_id for s in slots}) == 10
        assert all(s.customer_id == assignment.customer_id for s in slots)
        assert [s.display_name for s in slots] == [str(n) for n in range(1, 11)]

        accounts = any_service.list_accounts()
        assert [a.label for a, _ in accounts] == ["1a8@pool.test", "9a16@pool.test"]
        assert any_service.count_free_slots() == 6

    def test_release_then_reassign(self, any_service, assignment):
        first = any_service.assign_slot(assignment)
        any_service.release_slots_for_customer(assignment.customer_id)

        second = any_service.assign_slot(SlotAssignment(customer_id=uuid4()))

        assert second.slot_id == first.slot_id
        assert any_service.count_free_slots() == 7

    @pytest.mark.parametrize("quantity", [0, -1, 51])
    def test_quantity_bounds(self, any_service, assignment, quantity):
        with pytest.raises(SlotValidationError):
            any_service.assign_slots(assignment, quantity)

        assert any_service.count_free_slots() == 0

    def test_history_trail(self, any_service, assignment):
        slot = any_service.assign_slot(assignment)
        any_service.release_slot(slot.slot_id)

        actions = {e.action for e in any_service.slot_history(slot.slot_id)}
        assert actions == {HistoryAction.ASSIGNED, HistoryAction.RELEASED}


class TestUpdateSlot:
    """Test editing assignment metadata."""

    def test_update_assigned_slot(self, any_service, assignment):
        slot = any_service.assign_slot(assignment)

        updated = any_service.update_slot(slot.slot_id, {
            "expires_at": date(2027, 6, 30),
            "note": "renewed",
        })

        assert updated.expires_at == date(2027, 6, 30)
        assert updated.note == "renewed"
        assert updated.customer_id == assignment.customer_id

        entries = [
            e for e in any_service.slot_history(slot.slot_id)
            if e.action == HistoryAction.UPDATED
        ]
        assert entries[0].metadata == {"expires_at": "2027-06-30", "note": "renewed"}

    def test_state_cannot_be_edited(self, any_service, assignment):
        slot = any_service.assign_slot(assignment)

        with pytest.raises(SlotValidationError):
            any_service.update_slot(slot.slot_id, {"state": SlotState.FREE})

        with pytest.raises(SlotValidationError):
            any_service.update_slot(slot.slot_id, {"customer_id": uuid4()})

    def test_free_slot_cannot_be_edited(self, any_service):
        slot = any_service.ensure_pool_ready()

        with pytest.raises(SlotValidationError):
            any_service.update_slot(slot.slot_id, {"note": "x"})

    def test_unknown_slot(self, any_service):
        with pytest.raises(SlotNotFound):
            any_service.update_slot(uuid4(), {"note": "x"})

    def test_empty_changes_return_current(self, any_service, assignment):
        slot = any_service.assign_slot(assignment)

        current = any_service.update_slot(slot.slot_id, {})

        assert current.note == assignment.note

    def test_edit_not_applied_after_slot_changes_hands(self, pool_settings, fake_sleep, assignment):
        """An edit for one customer never lands on the next holder of the slot."""
        newcomer = uuid4()

        class ReassigningRepository(InMemorySlotRepository):
            def update_details(self, slot_id, changes, expected_customer_id=None):
                self.release(slot_id, "0000")
                self.try_reserve(
                    slot_id,
                    SlotAssignment(customer_id=newcomer, note="newcomer note"),
                    "5555",
                )
                return super().update_details(slot_id, changes, expected_customer_id)

        repository = ReassigningRepository()
        service = build_slot_service(repository, pool_settings, sleep=fake_sleep)
        slot = service.assign_slot(assignment)

        with pytest.raises(SlotValidationError):
            service.update_slot(slot.slot_id, {"note": "edit for the first customer"})

        stored = repository.get_slot(slot.slot_id)
        assert stored.customer_id == newcomer
        assert stored.note == "newcomer note"


class TestCredentials:
    """Test credential rotation."""

    def test_regenerate_credential(self, any_service, assignment):
        slot = any_service.assign_slot(assignment)

        rotated = any_service.regenerate_credential(slot.slot_id)

        assert len(rotated.credential) == 4
        assert rotated.customer_id == assignment.customer_id
        actions = [e.action for e in any_service.slot_history(slot.slot_id)]
        assert HistoryAction.CREDENTIAL_ROTATED in actions

    def test_regenerate_unknown_slot(self, any_service):
        with pytest.raises(SlotNotFound):
            any_service.regenerate_credential(uuid4())

    def test_rotate_all_skips_assigned(self, any_service, assignment):
        any_service.assign_slots(assignment, 3)

        assert any_service.rotate_all_credentials() == 5

    def test_rotate_all_keeps_credential_of_new_assignment(self, pool_settings, fake_sleep):
        """A slot assigned after the listing keeps the credential its customer got."""

        class AssigningDuringListing(InMemorySlotRepository):
            issued = None

            def list_unassigned_slot_ids(self):
                slot_ids = super().list_unassigned_slot_ids()
                reservation = self.try_reserve(
                    slot_ids[0],
                    SlotAssignment(customer_id=uuid4()).with_defaults(),
                    "4321",
                )
                self.issued = reservation.slot
                return slot_ids

        repository = AssigningDuringListing()
        service = build_slot_service(repository, pool_settings, sleep=fake_sleep)
        service.ensure_pool_ready()

        assert service.rotate_all_credentials() == 7

        stored = repository.get_slot(repository.issued.slot_id)
        assert stored.state == SlotState.ASSIGNED
        assert stored.credential == "4321"


class TestPoolMaintenance:
    """Test pool bootstrap and reporting."""

    def test_ensure_pool_ready_bootstraps_once(self, any_service):
        any_service.ensure_pool_ready()
        any_service.ensure_pool_ready()

        assert len(any_service.list_accounts()) == 1
        assert any_service.count_free_slots() == 8

    def test_overview(self, any_service, assignment):
        any_service.assign_slots(assignment, 2)
        any_service.release_slots_for_customer(assignment.customer_id)
        any_service.assign_slot(SlotAssignment(customer_id=uuid4()))

        overview = any_service.pool_overview()

        assert overview.accounts == 1
        assert overview.total == 8
        assert overview.by_state[SlotState.ASSIGNED] == 1
        assert overview.by_state[SlotState.RECLAIMED] == 1
        assert overview.by_state[SlotState.FREE] == 6
        assert overview.by_state[SlotState.SUSPENDED] == 0
        assert overview.assignable == 7

    def test_list_accounts_ordered_by_index(self, service, memory_repository, codec):
        memory_repository.create_account(Account(account_id=uuid4(), label="vip@pool.test"), [])
        memory_repository.create_account(
            Account(account_id=uuid4(), label=codec.label_for_index(1)), []
        )
        memory_repository.create_account(
            Account(account_id=uuid4(), label=codec.label_for_index(0)), []
        )

        labels = [a.label for a, _ in service.list_accounts()]

        assert labels == ["1a8@pool.test", "9a16@pool.test", "vip@pool.test"]


class TestUnavailablePool:
    """Test behavior with the slot tables missing."""

    def test_assign_raises_unavailable(self, service, memory_repository, assignment):
        memory_repository.schema_present = False

        with pytest.raises(SlotPoolUnavailable):
            service.assign_slot(assignment)

    def test_history_degrades_to_empty(self, service, memory_repository):
        memory_repository.schema_present = False

        assert service.slot_history(uuid4()) == []

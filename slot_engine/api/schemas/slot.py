from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from slot_engine.core.models import Account, Slot, SlotAssignment, SlotHistoryEntry


class AssignSlotRequest(BaseModel):
    customer_id: UUID
    assigned_by: Optional[str] = Field(default=None, max_length=255)
    assigned_at: Optional[datetime] = None
    activates_at: Optional[date] = None
    expires_at: Optional[date] = None
    note: Optional[str] = None
    plan_tag: Optional[str] = Field(default=None, max_length=50)
    has_add_on: Optional[bool] = None

    def to_assignment(self) -> SlotAssignment:
        return SlotAssignment(
            customer_id=self.customer_id,
            assigned_by=self.assigned_by,
            assigned_at=self.assigned_at,
            activates_at=self.activates_at,
            expires_at=self.expires_at,
            note=self.note,
            plan_tag=self.plan_tag,
            has_add_on=self.has_add_on,
        )


class BatchAssignRequest(AssignSlotRequest):
    # Upper bound is enforced by the service (max_bulk_quantity)
    quantity: int = Field(..., ge=1)


class UpdateSlotRequest(BaseModel):
    """Only fields present in the request body are changed."""
    assigned_by: Optional[str] = Field(default=None, max_length=255)
    activates_at: Optional[date] = None
    expires_at: Optional[date] = None
    note: Optional[str] = None
    plan_tag: Optional[str] = Field(default=None, max_length=50)
    has_add_on: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SlotResponse(BaseModel):
    slot_id: UUID
    account_id: UUID
    account_label: Optional[str]
    position: int
    display_name: str
    credential: str
    state: str
    customer_id: Optional[UUID]
    assigned_by: Optional[str]
    assigned_at: Optional[datetime]
    activates_at: Optional[date]
    expires_at: Optional[date]
    note: Optional[str]
    plan_tag: Optional[str]
    has_add_on: Optional[bool]

    @staticmethod
    def from_domain(slot: Slot) -> "SlotResponse":
        return SlotResponse(
            slot_id=slot.slot_id,
            account_id=slot.account_id,
            account_label=slot.account_label,
            position=slot.position,
            display_name=slot.display_name,
            credential=slot.credential,
            state=slot.state.value,
            customer_id=slot.customer_id,
            assigned_by=slot.assigned_by,
            assigned_at=slot.assigned_at,
            activates_at=slot.activates_at,
            expires_at=slot.expires_at,
            note=slot.note,
            plan_tag=slot.plan_tag,
            has_add_on=slot.has_add_on,
        )


class SlotHistoryResponse(BaseModel):
    entry_id: UUID
    slot_id: UUID
    action: str
    metadata: Dict[str, Any]
    created_at: datetime

    @staticmethod
    def from_domain(entry: SlotHistoryEntry) -> "SlotHistoryResponse":
        return SlotHistoryResponse(
            entry_id=entry.entry_id,
            slot_id=entry.slot_id,
            action=entry.action.value,
            metadata=entry.metadata,
            created_at=entry.created_at,
        )


class AccountResponse(BaseModel):
    account_id: UUID
    label: str
    created_at: datetime
    slots: List[SlotResponse]

    @staticmethod
    def from_domain(account: Account, slots: List[Slot]) -> "AccountResponse":
        return AccountResponse(
            account_id=account.account_id,
            label=account.label,
            created_at=account.created_at,
            slots=[SlotResponse.from_domain(slot) for slot in slots],
        )


class FreeCountResponse(BaseModel):
    free: int


class OverviewResponse(BaseModel):
    accounts: int
    total_slots: int
    assignable: int
    by_state: Dict[str, int]

# slot_engine/api/routes/slots.py
"""Slot pool API routes."""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from slot_engine.api.container import get_slot_service
from slot_engine.api.schemas.slot import (
    AccountResponse,
    AssignSlotRequest,
    BatchAssignRequest,
    FreeCountResponse,
    OverviewResponse,
    SlotHistoryResponse,
    SlotResponse,
    UpdateSlotRequest,
)
from slot_engine.core.errors import (
    SlotAllocationFailed,
    SlotError,
    SlotNotFound,
    SlotPoolCapacityReached,
    SlotPoolUnavailable,
    SlotValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["slots"])


def to_http_error(error: SlotError) -> HTTPException:
    """Map slot errors onto HTTP status codes."""
    if isinstance(error, SlotValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, SlotNotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (SlotAllocationFailed, SlotPoolCapacityReached)):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, SlotPoolUnavailable):
        return HTTPException(status_code=503, detail="Slot pool is unavailable")

    logger.error(f"[api] unexpected slot error: {error}", exc_info=error)
    return HTTPException(status_code=500, detail="Slot operation failed")


# -------------------------
# ASSIGN
# -------------------------

@router.post("/slots/assign", response_model=SlotResponse, status_code=201)
def assign_slot(
    request: AssignSlotRequest,
    service=Depends(get_slot_service),
):
    try:
        slot = service.assign_slot(request.to_assignment())
    except SlotError as e:
        raise to_http_error(e) from e

    return SlotResponse.from_domain(slot)


@router.post("/slots/batch-assign", response_model=List[SlotResponse], status_code=201)
def batch_assign_slots(
    request: BatchAssignRequest,
    service=Depends(get_slot_service),
):
    try:
        slots = service.assign_slots(request.to_assignment(), request.quantity)
    except SlotError as e:
        raise to_http_error(e) from e

    return [SlotResponse.from_domain(slot) for slot in slots]


# -------------------------
# RELEASE
# -------------------------

@router.post("/customers/{customer_id}/release", response_model=List[SlotResponse])
def release_customer_slots(
    customer_id: UUID,
    service=Depends(get_slot_service),
):
    try:
        slots = service.release_slots_for_customer(customer_id)
    except SlotError as e:
        raise to_http_error(e) from e

    return [SlotResponse.from_domain(slot) for slot in slots]


@router.post("/slots/{slot_id}/release", response_model=SlotResponse)
def release_slot(
    slot_id: UUID,
    service=Depends(get_slot_service),
):
    try:
        slot = service.release_slot(slot_id)
    except SlotError as e:
        raise to_http_error(e) from e

    return SlotResponse.from_domain(slot)


# -------------------------
# EDIT
# -------------------------

@router.post("/slots/{slot_id}/regenerate-credential", response_model=SlotResponse)
def regenerate_credential(
    slot_id: UUID,
    service=Depends(get_slot_service),
):
    try:
        slot = service.regenerate_credential(slot_id)
    except SlotError as e:
        raise to_http_error(e) from e

    return SlotResponse.from_domain(slot)


@router.patch("/slots/{slot_id}", response_model=SlotResponse)
def update_slot(
    slot_id: UUID,
    request: UpdateSlotRequest,
    service=Depends(get_slot_service),
):
    try:
        slot = service.update_slot(slot_id, request.changes())
    except SlotError as e:
        raise to_http_error(e) from e

    return SlotResponse.from_domain(slot)


# -------------------------
# READ
# -------------------------

@router.get("/slots/free-count", response_model=FreeCountResponse)
def free_slot_count(service=Depends(get_slot_service)):
    try:
        return FreeCountResponse(free=service.count_free_slots())
    except SlotError as e:
        raise to_http_error(e) from e


@router.get("/slots/{slot_id}/history", response_model=List[SlotHistoryResponse])
def slot_history(
    slot_id: UUID,
    service=Depends(get_slot_service),
):
    try:
        entries = service.slot_history(slot_id)
    except SlotError as e:
        raise to_http_error(e) from e

    return [SlotHistoryResponse.from_domain(entry) for entry in entries]


@router.get("/accounts", response_model=List[AccountResponse])
def list_accounts(service=Depends(get_slot_service)):
    try:
        accounts = service.list_accounts()
    except SlotError as e:
        raise to_http_error(e) from e

    return [AccountResponse.from_domain(account, slots) for account, slots in accounts]


@router.get("/overview", response_model=OverviewResponse)
def pool_overview(service=Depends(get_slot_service)):
    try:
        overview = service.pool_overview()
    except SlotError as e:
        raise to_http_error(e) from e

    return OverviewResponse(
        accounts=overview.accounts,
        total_slots=overview.total,
        assignable=overview.assignable,
        by_state={state.value: count for state, count in overview.by_state.items()},
    )

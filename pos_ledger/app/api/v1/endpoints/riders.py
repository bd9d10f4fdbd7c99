"""
Rider API Endpoints.

Rider shifts, cash settlements, floats and the pending-settlement view.
"""

from fastapi import APIRouter, Depends

from pos_ledger.app.core.dependencies import get_read_uow, get_restaurant_id, get_uow
from pos_ledger.app.core.exceptions import NotFoundError
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.cash.rider_shift_manager import RiderShiftManager
from pos_ledger.app.domain.ledger.posting_engine import PostingEngine
from pos_ledger.app.models.rider_shift import RiderShift
from pos_ledger.app.schemas.accounting import LedgerEntryResponse
from pos_ledger.app.schemas.rider import (
    ActiveShiftResponse,
    FloatIssueCreate,
    PendingOrderResponse,
    PendingSettlementResponse,
    PendingSettlementSummary,
    PostingResponse,
    RiderSettlementCreate,
    RiderShiftClose,
    RiderShiftOpen,
    RiderShiftResponse,
    ShiftMetricsResponse,
)

router = APIRouter(prefix="/riders", tags=["Riders"])


def _posting_response(entries) -> PostingResponse:
    return PostingResponse(entries=[LedgerEntryResponse.model_validate(entry) for entry in entries or []])


@router.post("/shift/open", response_model=RiderShiftResponse, status_code=201)
async def open_shift(
    payload: RiderShiftOpen,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_uow)
):
    shift = await RiderShiftManager.open_shift(
        uow, restaurant_id, payload.rider_id, payload.opened_by, payload.opening_float, payload.notes
    )
    await uow.commit()
    return shift


@router.post("/shift/close", response_model=RiderShiftResponse)
async def close_shift(
    payload: RiderShiftClose,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_uow)
):
    """
    Close a shift against the cash the rider hands back.
    """
    shift = await uow.session.get(RiderShift, payload.shift_id)
    if shift is None or shift.restaurant_id != restaurant_id:
        raise NotFoundError("Rider shift", payload.shift_id)

    shift = await RiderShiftManager.close_shift(
        uow, payload.shift_id, payload.closed_by, payload.closing_cash, payload.notes
    )
    await uow.commit()
    return shift


@router.post("/{rider_id}/settlements", response_model=PostingResponse, status_code=201)
async def record_settlement(
    rider_id: str,
    payload: RiderSettlementCreate,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_uow)
):
    entries = await PostingEngine.record_rider_settlement(
        uow,
        restaurant_id,
        rider_id,
        payload.amount_received,
        payload.order_ids,
        payload.processed_by,
        settlement_id=payload.settlement_id,
    )
    await uow.commit()
    return _posting_response(entries)


@router.post("/{rider_id}/float", response_model=PostingResponse)
async def issue_float(
    rider_id: str,
    payload: FloatIssueCreate,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_uow)
):
    """
    Hand change to a rider. A zero amount returns no entries.
    """
    entries = await PostingEngine.record_float_issue(
        uow, restaurant_id, rider_id, payload.amount, payload.processed_by, payload.reference_id
    )
    await uow.commit()
    return _posting_response(entries)


@router.get("/{rider_id}/active-shift", response_model=ActiveShiftResponse)
async def get_active_shift(
    rider_id: str,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_read_uow)
):
    shift = await RiderShiftManager.get_active_shift(uow, restaurant_id, rider_id)
    if shift is None:
        return ActiveShiftResponse()

    metrics = await RiderShiftManager.get_shift_metrics(uow, shift.id)
    return ActiveShiftResponse(
        shift=RiderShiftResponse.model_validate(shift),
        metrics=ShiftMetricsResponse.model_validate(metrics),
    )


@router.get("/{rider_id}/pending-settlement", response_model=PendingSettlementResponse)
async def get_pending_settlement(
    rider_id: str,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_read_uow)
):
    """
    DELIVERED orders awaiting settlement in the rider's active shift.
    """
    pending = await RiderShiftManager.get_pending_settlement(uow, restaurant_id, rider_id)
    if pending is None:
        return PendingSettlementResponse()

    return PendingSettlementResponse(
        active_shift=RiderShiftResponse.model_validate(pending.shift),
        orders=[PendingOrderResponse.model_validate(order) for order in pending.orders],
        summary=PendingSettlementSummary(
            order_count=pending.order_count,
            total_sales=pending.total_sales,
            opening_float=pending.shift.opening_float,
            expected_liability=pending.expected_liability,
        ),
    )

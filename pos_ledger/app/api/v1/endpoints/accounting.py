"""
Accounting API Endpoints.

Cash session lifecycle, payouts, balances, the recent ledger, the audit
trail and Z-reports. All routes are scoped to the restaurant in the
X-Restaurant-ID header.
"""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from pos_ledger.app.core.config import settings
from pos_ledger.app.core.dependencies import get_read_uow, get_restaurant_id, get_uow
from pos_ledger.app.core.exceptions import NotFoundError
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.cash.cash_session_manager import CashSessionManager
from pos_ledger.app.domain.ledger.accounts import HOUSE_DRAWER
from pos_ledger.app.domain.ledger.balance import BalanceCalculator
from pos_ledger.app.domain.ledger.ledger_store import LedgerStore
from pos_ledger.app.domain.ledger.posting_engine import PostingEngine
from pos_ledger.app.domain.reports.z_report import ReportGenerator
from pos_ledger.app.models.cash_session import CashSession
from pos_ledger.app.schemas.accounting import (
    ActiveSessionResponse,
    AuditLogResponse,
    BalanceResponse,
    CashSessionClose,
    CashSessionOpen,
    CashSessionResponse,
    LedgerEntryResponse,
    OrderSaleResponse,
    PayoutCreate,
    PayoutResponse,
    SessionMetricsResponse,
    ZReportResponse,
)
from pos_ledger.app.services import order_source
from pos_ledger.app.services.audit import get_audit_trail

router = APIRouter(prefix="/accounting", tags=["Accounting"])

# Path alias for the NULL drawer account
DRAWER_ACCOUNT_ALIAS = "drawer"


async def _get_tenant_session(uow: UnitOfWork, session_id: str, restaurant_id: str) -> CashSession:
    session = await uow.session.get(CashSession, session_id)
    if session is None or session.restaurant_id != restaurant_id:
        raise NotFoundError("Cash session", session_id)
    return session


@router.get("/session", response_model=ActiveSessionResponse)
async def get_session(
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_read_uow)
):
    """
    Live metrics of the open drawer session.
    """
    metrics = await CashSessionManager.get_session_metrics(uow, restaurant_id)
    if metrics is None:
        return ActiveSessionResponse()
    return ActiveSessionResponse(session=SessionMetricsResponse.model_validate(metrics))


@router.post("/session/open", response_model=CashSessionResponse, status_code=201)
async def open_session(
    payload: CashSessionOpen,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_uow)
):
    session = await CashSessionManager.open_cash_session(
        uow, restaurant_id, payload.staff_id, payload.opening_balance
    )
    await uow.commit()
    return session


@router.post("/session/close", response_model=CashSessionResponse)
async def close_session(
    payload: CashSessionClose,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_uow)
):
    """
    Reconcile the drawer against the counted cash and close the session.
    """
    await _get_tenant_session(uow, payload.session_id, restaurant_id)
    session = await CashSessionManager.close_cash_session(
        uow, payload.session_id, payload.staff_id, payload.actual_balance, payload.notes
    )
    await uow.commit()
    return session


@router.get("/z-report/{session_id}", response_model=ZReportResponse)
async def get_z_report(
    session_id: str,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_read_uow)
):
    await _get_tenant_session(uow, session_id, restaurant_id)
    report = await ReportGenerator.get_z_report(uow, session_id)
    return ZReportResponse.model_validate(report)


@router.post("/payouts", response_model=PayoutResponse, status_code=201)
async def create_payout(
    payload: PayoutCreate,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_uow)
):
    payout = await PostingEngine.process_payout(
        uow, restaurant_id, payload.amount, payload.category, payload.notes, payload.processed_by
    )
    await uow.commit()
    return payout


@router.get("/balance/{account_id}", response_model=BalanceResponse)
async def get_balance(
    account_id: str,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_read_uow)
):
    """
    Replayed balance of an account. Use ``drawer`` for the house cash drawer.
    """
    resolved = HOUSE_DRAWER if account_id == DRAWER_ACCOUNT_ALIAS else account_id
    balance = await BalanceCalculator.get_balance(uow, restaurant_id, resolved)
    return BalanceResponse(restaurant_id=restaurant_id, account_id=resolved, balance=balance)


@router.get("/ledger", response_model=List[LedgerEntryResponse])
async def get_recent_ledger(
    limit: Optional[int] = Query(None, ge=1, le=500),
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_read_uow)
):
    return await LedgerStore.get_recent_entries(uow, restaurant_id, limit or settings.recent_ledger_limit)


@router.get("/audit", response_model=List[AuditLogResponse])
async def get_audit_log(
    entity_id: Optional[str] = Query(None, description="Only events on this session, shift or payout"),
    action: Optional[str] = Query(None, description="Only events with this action"),
    limit: int = Query(100, ge=1, le=500),
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_read_uow)
):
    """
    Manager cash actions, most recent first.
    """
    return await get_audit_trail(uow, restaurant_id, entity_id=entity_id, action=action, limit=limit)


@router.post("/orders/{order_id}/sale", response_model=OrderSaleResponse)
async def record_order_sale(
    order_id: str,
    restaurant_id: str = Depends(get_restaurant_id),
    uow: UnitOfWork = Depends(get_uow)
):
    """
    Post the revenue of a settled order. Repeat calls and unknown orders are
    no-ops.
    """
    order = await order_source.get_order(uow, order_id)
    if order is None or order.restaurant_id != restaurant_id:
        return OrderSaleResponse(order_id=order_id, recorded=False)

    entries = await PostingEngine.record_order_sale(uow, order_id)
    await uow.commit()
    return OrderSaleResponse(
        order_id=order_id,
        recorded=entries is not None,
        entries=[LedgerEntryResponse.model_validate(entry) for entry in entries or []],
    )

"""
Cash Session Tests.

Lifecycle, exclusivity and reconciliation of the drawer session.
"""

import pytest
from decimal import Decimal
from sqlalchemy import select, func

from pos_ledger.app.core.exceptions import ConflictError, ValidationError
from pos_ledger.app.domain.cash.cash_session_manager import CashSessionManager
from pos_ledger.app.domain.ledger.posting_engine import PostingEngine
from pos_ledger.app.models.audit_log import AuditLog
from pos_ledger.app.models.cash_session import CashSession
from pos_ledger.app.models.ledger_entry import LedgerEntry
from pos_ledger.app.models.ledger_enums import CashSessionStatus, ReferenceType
from pos_ledger.app.models.order_enums import OrderType
from pos_ledger.app.services.audit import AuditAction
from pos_ledger.tests.helpers import OTHER_RESTAURANT_ID, RESTAURANT_ID, RIDER_ID, STAFF_ID


async def open_session(make_uow, opening="1000", restaurant_id=RESTAURANT_ID) -> CashSession:
    async with make_uow() as uow:
        return await CashSessionManager.open_cash_session(uow, restaurant_id, STAFF_ID, opening)


async def count_entries(make_uow) -> int:
    async with make_uow() as uow:
        return (await uow.session.execute(select(func.count(LedgerEntry.id)))).scalar_one()


@pytest.mark.asyncio
async def test_open_session_posts_opening_balance(make_uow):
    session = await open_session(make_uow, "1000")

    async with make_uow() as uow:
        entries = (await uow.session.execute(
            select(LedgerEntry).where(LedgerEntry.reference_id == session.id)
        )).scalars().all()

    assert session.status == CashSessionStatus.OPEN
    assert session.opening_balance == Decimal("1000.00")
    assert len(entries) == 2
    assert {e.reference_type for e in entries} == {ReferenceType.OPENING_BALANCE}


@pytest.mark.asyncio
async def test_zero_opening_balance_posts_nothing(make_uow):
    await open_session(make_uow, "0")

    assert await count_entries(make_uow) == 0


@pytest.mark.asyncio
async def test_negative_opening_balance_is_rejected(make_uow):
    with pytest.raises(ValidationError):
        await open_session(make_uow, "-1")


@pytest.mark.asyncio
async def test_second_open_session_conflicts_with_opened_at(make_uow):
    first = await open_session(make_uow)

    with pytest.raises(ConflictError) as exc_info:
        await open_session(make_uow, "500")

    assert exc_info.value.details["session_id"] == first.id
    assert exc_info.value.details["opened_at"] == first.opened_at.isoformat()
    assert first.opened_at.isoformat() in exc_info.value.message


@pytest.mark.asyncio
async def test_sessions_are_exclusive_per_restaurant_only(make_uow):
    await open_session(make_uow)
    other = await open_session(make_uow, restaurant_id=OTHER_RESTAURANT_ID)

    assert other.status == CashSessionStatus.OPEN


@pytest.mark.asyncio
async def test_metrics_none_without_open_session(make_uow):
    async with make_uow() as uow:
        assert await CashSessionManager.get_session_metrics(uow, RESTAURANT_ID) is None


@pytest.mark.asyncio
async def test_close_reconciles_to_zero_variance(make_uow, order_factory):
    """Opening 1000, cash sales 5000, rider settlement 800, payout 300."""
    session = await open_session(make_uow, "1000")
    cash_order = await order_factory(5000)
    rider_order = await order_factory(800, order_type=OrderType.DELIVERY, assigned_driver_id=RIDER_ID)

    async with make_uow() as uow:
        await PostingEngine.record_order_sale(uow, cash_order)
        await PostingEngine.record_order_sale(uow, rider_order)
        await PostingEngine.record_rider_settlement(uow, RESTAURANT_ID, RIDER_ID, "800", [rider_order], STAFF_ID)
        await PostingEngine.record_payout(uow, RESTAURANT_ID, "300", "Supplies", None, STAFF_ID)

    async with make_uow() as uow:
        metrics = await CashSessionManager.get_session_metrics(uow, RESTAURANT_ID)

    assert metrics.session_id == session.id
    assert metrics.opening_balance == Decimal("1000.00")
    assert metrics.revenue == Decimal("5800.00")
    assert metrics.cash_sales == Decimal("5000.00")
    assert metrics.settlements == Decimal("800.00")
    assert metrics.payouts == Decimal("300.00")
    assert metrics.adjustments == Decimal("0.00")
    assert metrics.expected_cash == Decimal("6500.00")

    entries_before_close = await count_entries(make_uow)

    async with make_uow() as uow:
        closed = await CashSessionManager.close_cash_session(uow, session.id, STAFF_ID, "6500", notes="EOD")

    assert closed.status == CashSessionStatus.CLOSED
    assert closed.expected_balance == Decimal("6500.00")
    assert closed.actual_balance == Decimal("6500.00")
    assert closed.variance == Decimal("0.00")
    assert closed.closed_by == STAFF_ID
    assert closed.closed_at is not None
    assert await count_entries(make_uow) == entries_before_close


@pytest.mark.asyncio
async def test_close_records_shortage_without_posting(make_uow, order_factory):
    session = await open_session(make_uow, "200")
    order_id = await order_factory(100)

    async with make_uow() as uow:
        await PostingEngine.record_order_sale(uow, order_id)

    entries_before_close = await count_entries(make_uow)

    async with make_uow() as uow:
        closed = await CashSessionManager.close_cash_session(uow, session.id, STAFF_ID, "290.50")

    assert closed.expected_balance == Decimal("300.00")
    assert closed.variance == Decimal("-9.50")
    assert await count_entries(make_uow) == entries_before_close


@pytest.mark.asyncio
async def test_shift_float_counts_against_drawer(make_uow):
    session = await open_session(make_uow, "500")

    async with make_uow() as uow:
        await PostingEngine.record_shift_float(uow, RESTAURANT_ID, RIDER_ID, "150", STAFF_ID, "shift-1")

    async with make_uow() as uow:
        metrics = await CashSessionManager.get_session_metrics(uow, RESTAURANT_ID)
        expected = await CashSessionManager.expected_closing_balance(uow, session)

    assert metrics.settlements == Decimal("-150.00")
    assert metrics.expected_cash == expected == Decimal("350.00")


@pytest.mark.asyncio
async def test_close_twice_conflicts(make_uow):
    session = await open_session(make_uow)

    async with make_uow() as uow:
        await CashSessionManager.close_cash_session(uow, session.id, STAFF_ID, "1000")

    with pytest.raises(ConflictError):
        async with make_uow() as uow:
            await CashSessionManager.close_cash_session(uow, session.id, STAFF_ID, "1000")


@pytest.mark.asyncio
async def test_close_unknown_session_conflicts(make_uow):
    with pytest.raises(ConflictError):
        async with make_uow() as uow:
            await CashSessionManager.close_cash_session(uow, "missing", STAFF_ID, "0")


@pytest.mark.asyncio
async def test_close_rejects_negative_actual(make_uow):
    session = await open_session(make_uow)

    with pytest.raises(ValidationError):
        async with make_uow() as uow:
            await CashSessionManager.close_cash_session(uow, session.id, STAFF_ID, "-10")


@pytest.mark.asyncio
async def test_reopen_after_close(make_uow):
    first = await open_session(make_uow)
    async with make_uow() as uow:
        await CashSessionManager.close_cash_session(uow, first.id, STAFF_ID, "1000")

    second = await open_session(make_uow, "300")

    async with make_uow() as uow:
        active = await CashSessionManager.get_active_session(uow, RESTAURANT_ID)
        metrics = await CashSessionManager.get_session_metrics(uow, RESTAURANT_ID)

    assert active.id == second.id
    assert metrics.expected_cash == Decimal("300.00")


@pytest.mark.asyncio
async def test_session_lifecycle_is_audited(make_uow):
    session = await open_session(make_uow)
    async with make_uow() as uow:
        await CashSessionManager.close_cash_session(uow, session.id, STAFF_ID, "990")

    async with make_uow() as uow:
        rows = (await uow.session.execute(
            select(AuditLog).where(AuditLog.entity_id == session.id).order_by(AuditLog.id)
        )).scalars().all()

    assert [row.action for row in rows] == [AuditAction.CASH_SESSION_OPENED, AuditAction.CASH_SESSION_CLOSED]
    assert rows[1].meta_data["variance"] == "-10.00"

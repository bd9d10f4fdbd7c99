"""
Failure Injection Tests.

Validates that the ledger stays consistent when something goes wrong.
"""

import pytest
from decimal import Decimal
from sqlalchemy import select, func

from pos_ledger.app.core.exceptions import ConsistencyError
from pos_ledger.app.domain.ledger.accounts import HOUSE_DRAWER, HOUSE_REVENUE
from pos_ledger.app.domain.ledger.balance import BalanceCalculator
from pos_ledger.app.domain.ledger.ledger_store import LedgerStore
from pos_ledger.app.domain.ledger.posting import PostingGroup, PostingLine
from pos_ledger.app.domain.ledger.posting_engine import PostingEngine
from pos_ledger.app.models.ledger_entry import LedgerEntry
from pos_ledger.app.models.ledger_enums import ReferenceType, TransactionType
from pos_ledger.tests.helpers import RESTAURANT_ID, RIDER_ID, STAFF_ID


async def count_entries(make_uow) -> int:
    async with make_uow() as uow:
        return (await uow.session.execute(select(func.count(LedgerEntry.id)))).scalar_one()


@pytest.mark.asyncio
async def test_ledger_entry_cannot_be_modified(make_uow):
    async with make_uow() as uow:
        entries = await PostingEngine.record_float_issue(uow, RESTAURANT_ID, RIDER_ID, 40, STAFF_ID)
    entry_id = entries[0].id

    with pytest.raises(ConsistencyError):
        async with make_uow() as uow:
            entry = await uow.session.get(LedgerEntry, entry_id)
            entry.amount = Decimal("1.00")
            await uow.flush()

    async with make_uow() as uow:
        entry = await uow.session.get(LedgerEntry, entry_id)
        assert entry.amount == Decimal("40.00")


@pytest.mark.asyncio
async def test_ledger_entry_cannot_be_deleted(make_uow):
    async with make_uow() as uow:
        entries = await PostingEngine.record_float_issue(uow, RESTAURANT_ID, RIDER_ID, 40, STAFF_ID)

    with pytest.raises(ConsistencyError):
        async with make_uow() as uow:
            entry = await uow.session.get(LedgerEntry, entries[0].id)
            await uow.session.delete(entry)
            await uow.flush()

    assert await count_entries(make_uow) == 2


def test_posting_group_rejects_imbalance():
    group = PostingGroup(RESTAURANT_ID, ReferenceType.ADJUSTMENT)
    group.debit(HOUSE_DRAWER, "10")
    group.credit(HOUSE_REVENUE, "9.99")

    with pytest.raises(ConsistencyError) as exc_info:
        group.validate()

    assert exc_info.value.details["debits"] == "10.00"
    assert exc_info.value.details["credits"] == "9.99"


def test_posting_group_needs_two_lines():
    group = PostingGroup(RESTAURANT_ID, ReferenceType.ADJUSTMENT)
    group.debit(HOUSE_DRAWER, "10")

    with pytest.raises(ConsistencyError):
        group.validate()


def test_posting_group_rejects_non_positive_lines():
    group = PostingGroup(RESTAURANT_ID, ReferenceType.ADJUSTMENT)
    group.lines.append(PostingLine(HOUSE_DRAWER, TransactionType.DEBIT, Decimal("0.00")))
    group.lines.append(PostingLine(HOUSE_REVENUE, TransactionType.CREDIT, Decimal("0.00")))

    with pytest.raises(ConsistencyError):
        group.validate()


@pytest.mark.asyncio
async def test_unbalanced_group_never_reaches_database(make_uow):
    group = PostingGroup(RESTAURANT_ID, ReferenceType.ADJUSTMENT, processed_by=STAFF_ID)
    group.debit(HOUSE_DRAWER, "10")
    group.credit(RIDER_ID, "5")

    with pytest.raises(ConsistencyError):
        async with make_uow() as uow:
            await LedgerStore.append(uow, group)

    assert await count_entries(make_uow) == 0


@pytest.mark.asyncio
async def test_failure_rolls_back_whole_unit_of_work(make_uow):
    with pytest.raises(RuntimeError):
        async with make_uow() as uow:
            await PostingEngine.record_float_issue(uow, RESTAURANT_ID, RIDER_ID, 40, STAFF_ID)
            await PostingEngine.record_payout(uow, RESTAURANT_ID, 10, "Supplies", None, STAFF_ID)
            raise RuntimeError("printer on fire")

    assert await count_entries(make_uow) == 0


@pytest.mark.asyncio
async def test_lost_revenue_race_keeps_outer_work(make_uow, order_factory, mocker):
    """A unique-index loss inside record_order_sale does not poison the unit of work."""
    order_id = await order_factory(500)

    async with make_uow() as uow:
        await PostingEngine.record_order_sale(uow, order_id)

    # Pretend the idempotency pre-check missed the committed revenue
    mocker.patch.object(LedgerStore, "find_order_revenue", new=mocker.AsyncMock(return_value=None))

    async with make_uow() as uow:
        await PostingEngine.record_float_issue(uow, RESTAURANT_ID, RIDER_ID, 40, STAFF_ID)
        result = await PostingEngine.record_order_sale(uow, order_id)
        await PostingEngine.record_payout(uow, RESTAURANT_ID, 15, "Supplies", None, STAFF_ID)

    assert result is None
    assert await count_entries(make_uow) == 6

    async with make_uow() as uow:
        await BalanceCalculator.assert_balanced(uow, RESTAURANT_ID)
        assert await BalanceCalculator.get_balance(uow, RESTAURANT_ID, None) == Decimal("445.00")

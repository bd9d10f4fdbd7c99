"""
Ledger Store.

Append-only persistence of ledger entries and the queries the rest of the
ledger replays from. ``append`` is the only code path that writes a
LedgerEntry.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, desc

from pos_ledger.app.db.columns import utc_now
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.ledger.money import ZERO
from pos_ledger.app.domain.ledger.posting import PostingGroup, PostingLine
from pos_ledger.app.models.ledger_entry import LedgerEntry
from pos_ledger.app.models.ledger_enums import ReferenceType, TransactionType

logger = logging.getLogger(__name__)


def create_ledger_entry(group: PostingGroup, line: PostingLine, created_at: datetime) -> LedgerEntry:
    """Build the row for one line of a posting group. Not persisted."""
    return LedgerEntry(
        restaurant_id=group.restaurant_id,
        posting_group_id=group.posting_group_id,
        account_id=line.account_id,
        transaction_type=line.transaction_type,
        amount=line.amount,
        reference_type=group.reference_type,
        reference_id=group.reference_id,
        description=line.description,
        processed_by=group.processed_by,
        created_at=created_at,
    )


def _account_filter(account_id: Optional[str]):
    if account_id is None:
        return LedgerEntry.account_id.is_(None)
    return LedgerEntry.account_id == account_id


class LedgerStore:

    @staticmethod
    async def append(uow: UnitOfWork, group: PostingGroup) -> list[LedgerEntry]:
        """
        Persist a posting group.

        The group is validated before anything is added to the session, so an
        unbalanced group never reaches the database.

        Raises:
            ConsistencyError: group fails validation
        """
        group.validate()

        created_at = utc_now()
        entries = [create_ledger_entry(group, line, created_at) for line in group.lines]

        uow.session.add_all(entries)
        await uow.flush()

        logger.debug(
            "Posting group appended",
            extra={
                "posting_group_id": group.posting_group_id,
                "reference_type": group.reference_type.value,
                "entries": len(entries),
            }
        )
        return entries

    @staticmethod
    async def entries_for_account(
        uow: UnitOfWork,
        restaurant_id: str,
        account_id: Optional[str],
        since: Optional[datetime] = None
    ) -> list[LedgerEntry]:
        stmt = select(LedgerEntry).where(
            LedgerEntry.restaurant_id == restaurant_id,
            _account_filter(account_id),
        )
        if since is not None:
            stmt = stmt.where(LedgerEntry.created_at >= since)

        result = await uow.session.execute(stmt.order_by(LedgerEntry.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def entries_in_window(
        uow: UnitOfWork,
        restaurant_id: str,
        start: datetime,
        end: Optional[datetime] = None
    ) -> list[LedgerEntry]:
        """All entries of a restaurant created inside ``[start, end]``."""
        stmt = select(LedgerEntry).where(
            LedgerEntry.restaurant_id == restaurant_id,
            LedgerEntry.created_at >= start,
        )
        if end is not None:
            stmt = stmt.where(LedgerEntry.created_at <= end)

        result = await uow.session.execute(stmt.order_by(LedgerEntry.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def find_order_revenue(uow: UnitOfWork, restaurant_id: str, order_id: str) -> Optional[LedgerEntry]:
        result = await uow.session.execute(
            select(LedgerEntry).where(
                LedgerEntry.restaurant_id == restaurant_id,
                LedgerEntry.reference_type == ReferenceType.ORDER,
                LedgerEntry.transaction_type == TransactionType.CREDIT,
                LedgerEntry.reference_id == order_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_recent_entries(uow: UnitOfWork, restaurant_id: str, limit: int = 50) -> list[LedgerEntry]:
        """Most recent entries first."""
        result = await uow.session.execute(
            select(LedgerEntry)
            .where(LedgerEntry.restaurant_id == restaurant_id)
            .order_by(desc(LedgerEntry.created_at), LedgerEntry.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def sum_by_type(uow: UnitOfWork, restaurant_id: str) -> tuple[Decimal, Decimal]:
        """(total debits, total credits) across every account of a restaurant."""
        result = await uow.session.execute(
            select(LedgerEntry.transaction_type, LedgerEntry.amount)
            .where(LedgerEntry.restaurant_id == restaurant_id)
        )
        debits, credits = ZERO, ZERO
        for transaction_type, amount in result.all():
            if transaction_type == TransactionType.DEBIT:
                debits += amount
            else:
                credits += amount
        return debits, credits

    @staticmethod
    async def find_unbalanced_groups(uow: UnitOfWork, restaurant_id: str) -> list[str]:
        """
        Posting group ids whose debits and credits differ.

        Summed in Decimal on this side; SQLite would sum NUMERIC as floats.
        """
        result = await uow.session.execute(
            select(LedgerEntry.posting_group_id, LedgerEntry.transaction_type, LedgerEntry.amount)
            .where(LedgerEntry.restaurant_id == restaurant_id)
        )
        nets: dict[str, Decimal] = {}
        for group_id, transaction_type, amount in result.all():
            signed = amount if transaction_type == TransactionType.DEBIT else -amount
            nets[group_id] = nets.get(group_id, ZERO) + signed
        return [group_id for group_id, net in nets.items() if net != ZERO]

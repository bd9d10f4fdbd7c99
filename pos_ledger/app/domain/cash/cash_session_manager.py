"""
Cash Session Manager.

Opens, measures and closes the house cash drawer session of a restaurant.
At most one session per restaurant is OPEN at any time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from pos_ledger.app.core.exceptions import ConflictError
from pos_ledger.app.db.columns import utc_now
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.ledger.accounts import HOUSE_DRAWER
from pos_ledger.app.domain.ledger.ledger_store import LedgerStore
from pos_ledger.app.domain.ledger.money import ZERO, require_non_negative
from pos_ledger.app.domain.ledger.posting_engine import PostingEngine
from pos_ledger.app.models.cash_session import CashSession
from pos_ledger.app.models.ledger_entry import LedgerEntry
from pos_ledger.app.models.ledger_enums import CashSessionStatus, ReferenceType, TransactionType
from pos_ledger.app.services import audit
from pos_ledger.app.services.audit import AuditAction

logger = logging.getLogger(__name__)

RIDER_CASH_REFERENCES = (ReferenceType.SETTLEMENT, ReferenceType.RIDER_SHIFT)


@dataclass
class DrawerMovements:
    """Drawer entries of a session window, grouped for reporting."""

    cash_sales: Decimal = ZERO
    settlements: Decimal = ZERO  # net rider cash in minus floats out
    payouts: Decimal = ZERO
    adjustments: Decimal = ZERO
    revenue: Decimal = ZERO  # all order revenue, cash or rider

    @property
    def net(self) -> Decimal:
        return self.cash_sales + self.settlements - self.payouts + self.adjustments


@dataclass
class SessionMetrics:
    session_id: str
    restaurant_id: str
    opened_at: datetime
    opening_balance: Decimal
    revenue: Decimal
    cash_sales: Decimal
    settlements: Decimal
    payouts: Decimal
    adjustments: Decimal
    expected_cash: Decimal


def classify_drawer_movements(entries: Iterable[LedgerEntry]) -> DrawerMovements:
    """
    Group ledger entries of a session window.

    The opening balance entry is skipped; it is carried by the session row.
    Anything not a sale, a rider movement or a payout lands in adjustments,
    so ``net`` always equals the signed sum of the non-opening drawer entries.
    """
    movements = DrawerMovements()

    for entry in entries:
        if entry.reference_type == ReferenceType.ORDER and entry.transaction_type == TransactionType.CREDIT:
            movements.revenue += entry.amount

        if entry.account_id is not HOUSE_DRAWER or entry.reference_type == ReferenceType.OPENING_BALANCE:
            continue

        if entry.reference_type == ReferenceType.ORDER and entry.transaction_type == TransactionType.DEBIT:
            movements.cash_sales += entry.amount
        elif entry.reference_type in RIDER_CASH_REFERENCES:
            movements.settlements += entry.signed_amount
        elif entry.reference_type == ReferenceType.PAYOUT and entry.transaction_type == TransactionType.CREDIT:
            movements.payouts += entry.amount
        else:
            movements.adjustments += entry.signed_amount

    return movements


class CashSessionManager:

    @staticmethod
    async def get_active_session(uow: UnitOfWork, restaurant_id: str) -> Optional[CashSession]:
        result = await uow.session.execute(
            select(CashSession).where(
                CashSession.restaurant_id == restaurant_id,
                CashSession.status == CashSessionStatus.OPEN,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def open_cash_session(uow: UnitOfWork, restaurant_id: str, staff_id: str, opening_balance) -> CashSession:
        """
        Open the drawer session of a restaurant.

        A non-zero opening balance is posted as DEBIT drawer / CREDIT house safe.

        Raises:
            ValidationError: negative opening balance
            ConflictError: a session is already open for the restaurant
        """
        opening = require_non_negative(opening_balance, "opening_balance")

        existing = await CashSessionManager.get_active_session(uow, restaurant_id)
        if existing is not None:
            opened_at = existing.opened_at.isoformat()
            raise ConflictError(
                f"A cash session is already open since {opened_at}",
                details={"session_id": existing.id, "opened_at": opened_at}
            )

        session = CashSession(
            restaurant_id=restaurant_id,
            opened_by=staff_id,
            opening_balance=opening,
            opened_at=utc_now(),
            status=CashSessionStatus.OPEN,
        )

        try:
            async with uow.savepoint():
                uow.session.add(session)
                await uow.flush()
        except IntegrityError:
            raise ConflictError(
                "A cash session is already open",
                details={"restaurant_id": restaurant_id}
            )

        await PostingEngine.record_opening_balance(uow, restaurant_id, opening, staff_id, session.id)

        await audit.log_event(
            uow,
            restaurant_id=restaurant_id,
            action=AuditAction.CASH_SESSION_OPENED,
            actor_id=staff_id,
            entity_type="CASH_SESSION",
            entity_id=session.id,
            metadata={"opening_balance": opening},
        )

        logger.info(
            "Cash session opened",
            extra={"restaurant_id": restaurant_id, "session_id": session.id, "opening_balance": str(opening)}
        )
        return session

    @staticmethod
    async def compute_metrics(uow: UnitOfWork, session: CashSession) -> SessionMetrics:
        """Live figures for a session window, open or closed."""
        entries = await LedgerStore.entries_in_window(uow, session.restaurant_id, session.opened_at, session.closed_at)
        movements = classify_drawer_movements(entries)

        return SessionMetrics(
            session_id=session.id,
            restaurant_id=session.restaurant_id,
            opened_at=session.opened_at,
            opening_balance=session.opening_balance,
            revenue=movements.revenue,
            cash_sales=movements.cash_sales,
            settlements=movements.settlements,
            payouts=movements.payouts,
            adjustments=movements.adjustments,
            expected_cash=session.opening_balance + movements.net,
        )

    @staticmethod
    async def get_session_metrics(uow: UnitOfWork, restaurant_id: str) -> Optional[SessionMetrics]:
        """Metrics of the OPEN session, or None when the drawer is closed."""
        session = await CashSessionManager.get_active_session(uow, restaurant_id)
        if session is None:
            return None
        return await CashSessionManager.compute_metrics(uow, session)

    @staticmethod
    async def expected_closing_balance(uow: UnitOfWork, session: CashSession) -> Decimal:
        """opening + drawer debits - drawer credits since the session opened."""
        entries = await LedgerStore.entries_for_account(uow, session.restaurant_id, HOUSE_DRAWER, since=session.opened_at)
        movement = sum(
            (entry.signed_amount for entry in entries if entry.reference_type != ReferenceType.OPENING_BALANCE),
            ZERO,
        )
        return session.opening_balance + movement

    @staticmethod
    async def close_cash_session(
        uow: UnitOfWork,
        session_id: str,
        staff_id: str,
        actual_balance,
        notes: Optional[str] = None
    ) -> CashSession:
        """
        Reconcile and close a session. The variance is recorded, never posted.

        Raises:
            ValidationError: negative actual balance
            ConflictError: the session does not exist or is already closed
        """
        actual = require_non_negative(actual_balance, "actual_balance")

        result = await uow.session.execute(
            select(CashSession).where(CashSession.id == session_id).with_for_update()
        )
        session = result.scalar_one_or_none()
        if session is None or session.status != CashSessionStatus.OPEN:
            raise ConflictError("No open cash session found", details={"session_id": session_id})

        expected = await CashSessionManager.expected_closing_balance(uow, session)
        variance = actual - expected

        session.closed_at = utc_now()
        session.closed_by = staff_id
        session.expected_balance = expected
        session.actual_balance = actual
        session.variance = variance
        session.status = CashSessionStatus.CLOSED
        session.notes = notes
        await uow.flush()

        await audit.log_event(
            uow,
            restaurant_id=session.restaurant_id,
            action=AuditAction.CASH_SESSION_CLOSED,
            actor_id=staff_id,
            entity_type="CASH_SESSION",
            entity_id=session.id,
            metadata={"expected": expected, "actual": actual, "variance": variance},
        )

        log_extra = {
            "restaurant_id": session.restaurant_id,
            "session_id": session.id,
            "expected": str(expected),
            "actual": str(actual),
            "variance": str(variance),
        }
        if variance != ZERO:
            logger.warning("Cash session closed with variance", extra=log_extra)
        else:
            logger.info("Cash session closed", extra=log_extra)

        return session

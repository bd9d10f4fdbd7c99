"""
Rider Shift Manager.

Tracks what a delivery rider leaves with and what they hand back.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from pos_ledger.app.core.exceptions import ConflictError, NotFoundError, ValidationError
from pos_ledger.app.db.columns import utc_now
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.ledger.accounts import is_house_account
from pos_ledger.app.domain.ledger.balance import BalanceCalculator
from pos_ledger.app.domain.ledger.money import ZERO, require_non_negative, to_money
from pos_ledger.app.domain.ledger.posting_engine import PostingEngine
from pos_ledger.app.models.order import Order
from pos_ledger.app.models.order_enums import OrderStatus, PaymentStatus
from pos_ledger.app.models.ledger_enums import RiderShiftStatus
from pos_ledger.app.models.rider_shift import RiderShift
from pos_ledger.app.services import audit, order_source
from pos_ledger.app.services.audit import AuditAction

logger = logging.getLogger(__name__)


@dataclass
class ShiftMetrics:
    shift_id: str
    rider_id: str
    status: RiderShiftStatus
    opened_at: datetime
    opening_float: Decimal
    order_count: int  # every order attributed to the shift
    delivered_orders: int
    active_orders: int
    total_sales: Decimal
    expected_liability: Decimal
    rider_balance: Decimal  # current ledger balance of the rider account


@dataclass
class PendingSettlement:
    shift: RiderShift
    orders: list[Order] = field(default_factory=list)
    total_sales: Decimal = ZERO

    @property
    def order_count(self) -> int:
        return len(self.orders)

    @property
    def expected_liability(self) -> Decimal:
        return self.shift.opening_float + self.total_sales


def _order_total(orders: list[Order]) -> Decimal:
    return sum((to_money(order.total, "total") for order in orders), ZERO)


class RiderShiftManager:

    @staticmethod
    async def get_active_shift(uow: UnitOfWork, restaurant_id: str, rider_id: str) -> Optional[RiderShift]:
        result = await uow.session.execute(
            select(RiderShift).where(
                RiderShift.restaurant_id == restaurant_id,
                RiderShift.rider_id == rider_id,
                RiderShift.status == RiderShiftStatus.OPEN,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def open_shift(
        uow: UnitOfWork,
        restaurant_id: str,
        rider_id: str,
        opened_by: str,
        opening_float,
        notes: Optional[str] = None
    ) -> RiderShift:
        """
        Start a rider shift. A non-zero float is posted as CREDIT drawer / DEBIT rider.

        Raises:
            ValidationError: negative float, missing rider or a house account
            ConflictError: the rider already has an open shift
        """
        opening = require_non_negative(opening_float, "opening_float")
        if not rider_id or is_house_account(rider_id):
            raise ValidationError("A rider account is required", details={"rider_id": rider_id})

        existing = await RiderShiftManager.get_active_shift(uow, restaurant_id, rider_id)
        if existing is not None:
            opened_at = existing.opened_at.isoformat()
            raise ConflictError(
                f"Rider already has an active shift since {opened_at}",
                details={"shift_id": existing.id, "opened_at": opened_at}
            )

        shift = RiderShift(
            restaurant_id=restaurant_id,
            rider_id=rider_id,
            opened_by=opened_by,
            opened_at=utc_now(),
            opening_float=opening,
            status=RiderShiftStatus.OPEN,
            notes=notes,
        )

        try:
            async with uow.savepoint():
                uow.session.add(shift)
                await uow.flush()
        except IntegrityError:
            raise ConflictError(
                "Rider already has an active shift",
                details={"restaurant_id": restaurant_id, "rider_id": rider_id}
            )

        await PostingEngine.record_shift_float(uow, restaurant_id, rider_id, opening, opened_by, shift.id)

        await audit.log_event(
            uow,
            restaurant_id=restaurant_id,
            action=AuditAction.RIDER_SHIFT_OPENED,
            actor_id=opened_by,
            entity_type="RIDER_SHIFT",
            entity_id=shift.id,
            metadata={"rider_id": rider_id, "opening_float": opening},
        )

        logger.info(
            "Rider shift opened",
            extra={"restaurant_id": restaurant_id, "rider_id": rider_id, "shift_id": shift.id}
        )
        return shift

    @staticmethod
    async def close_shift(
        uow: UnitOfWork,
        shift_id: str,
        closed_by: str,
        closing_cash,
        notes: Optional[str] = None
    ) -> RiderShift:
        """
        Close a shift against the cash the rider hands back.

        expected = opening float + totals of the shift's CLOSED and PAID orders.
        The cash received is posted as a settlement (DEBIT drawer / CREDIT rider).

        Raises:
            ValidationError: negative closing cash
            ConflictError: no open shift with this id
        """
        received = require_non_negative(closing_cash, "closing_cash")

        result = await uow.session.execute(
            select(RiderShift).where(RiderShift.id == shift_id).with_for_update()
        )
        shift = result.scalar_one_or_none()
        if shift is None or shift.status != RiderShiftStatus.OPEN:
            raise ConflictError("No open rider shift found", details={"shift_id": shift_id})

        settled_orders = await order_source.list_shift_orders(
            uow, shift.id, status=OrderStatus.CLOSED, payment_status=PaymentStatus.PAID
        )
        expected = shift.opening_float + _order_total(settled_orders)
        difference = received - expected

        shift.closed_at = utc_now()
        shift.closed_by = closed_by
        shift.closing_cash_received = received
        shift.expected_cash = expected
        shift.cash_difference = difference
        shift.status = RiderShiftStatus.CLOSED
        if notes:
            shift.notes = notes
        await uow.flush()

        if received > ZERO:
            await PostingEngine.record_rider_settlement(
                uow,
                restaurant_id=shift.restaurant_id,
                rider_id=shift.rider_id,
                amount_received=received,
                order_ids=[order.id for order in settled_orders],
                processed_by=closed_by,
                settlement_id=shift.id,
            )

        await audit.log_event(
            uow,
            restaurant_id=shift.restaurant_id,
            action=AuditAction.RIDER_SHIFT_CLOSED,
            actor_id=closed_by,
            entity_type="RIDER_SHIFT",
            entity_id=shift.id,
            metadata={"expected": expected, "received": received, "difference": difference},
        )

        log_extra = {
            "restaurant_id": shift.restaurant_id,
            "rider_id": shift.rider_id,
            "shift_id": shift.id,
            "expected": str(expected),
            "received": str(received),
            "difference": str(difference),
        }
        if difference != ZERO:
            logger.warning("Rider shift closed with cash difference", extra=log_extra)
        else:
            logger.info("Rider shift closed", extra=log_extra)

        return shift

    @staticmethod
    async def get_shift_metrics(uow: UnitOfWork, shift_id: str) -> ShiftMetrics:
        """
        Raises:
            NotFoundError: shift does not exist
        """
        shift = await uow.session.get(RiderShift, shift_id)
        if shift is None:
            raise NotFoundError("Rider shift", shift_id)

        orders = await order_source.list_shift_orders(uow, shift.id)
        delivered = [order for order in orders if order.status == OrderStatus.CLOSED]
        active = [order for order in orders if order.status not in (OrderStatus.CLOSED, OrderStatus.CANCELLED)]
        total_sales = _order_total(delivered)

        rider_balance = await BalanceCalculator.get_balance(uow, shift.restaurant_id, shift.rider_id)

        return ShiftMetrics(
            shift_id=shift.id,
            rider_id=shift.rider_id,
            status=shift.status,
            opened_at=shift.opened_at,
            opening_float=shift.opening_float,
            order_count=len(orders),
            delivered_orders=len(delivered),
            active_orders=len(active),
            total_sales=total_sales,
            expected_liability=shift.opening_float + total_sales,
            rider_balance=rider_balance,
        )

    @staticmethod
    async def get_pending_settlement(uow: UnitOfWork, restaurant_id: str, rider_id: str) -> Optional[PendingSettlement]:
        """DELIVERED orders of the rider's active shift, or None without an active shift."""
        shift = await RiderShiftManager.get_active_shift(uow, restaurant_id, rider_id)
        if shift is None:
            return None

        orders = await order_source.list_shift_orders(uow, shift.id, status=OrderStatus.DELIVERED)
        return PendingSettlement(shift=shift, orders=orders, total_sales=_order_total(orders))

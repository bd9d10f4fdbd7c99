"""
Posting Engine (Domain Logic).

Translates business events into balanced posting groups.
Every operation runs inside the caller's unit of work and is either fully
written or not at all.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from pos_ledger.app.core.exceptions import ValidationError
from pos_ledger.app.db.columns import new_uuid
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.ledger.accounts import (
    HOUSE_DRAWER,
    HOUSE_EXPENSES,
    HOUSE_REVENUE,
    HOUSE_SAFE,
    is_house_account,
)
from pos_ledger.app.domain.ledger.ledger_store import LedgerStore
from pos_ledger.app.domain.ledger.money import ZERO, require_non_negative, require_positive, to_money
from pos_ledger.app.domain.ledger.posting import PostingGroup
from pos_ledger.app.models.ledger_entry import LedgerEntry
from pos_ledger.app.models.ledger_enums import ReferenceType
from pos_ledger.app.models.order_enums import OrderType
from pos_ledger.app.models.payout import Payout
from pos_ledger.app.services import audit, order_source
from pos_ledger.app.services.audit import AuditAction

logger = logging.getLogger(__name__)


def _require_rider(rider_id: Optional[str]) -> str:
    if not rider_id or is_house_account(rider_id):
        raise ValidationError("A rider account is required", details={"rider_id": rider_id})
    return rider_id


class PostingEngine:

    @staticmethod
    async def record_order_sale(uow: UnitOfWork, order_id: str) -> Optional[list[LedgerEntry]]:
        """
        Post the revenue of an order. Safe to call any number of times.

        Flow:
        1. Load the order (missing order is logged and skipped)
        2. Idempotency check on the existing revenue credit
        3. DEBIT the rider for a delivery with an assigned driver, else the drawer
        4. CREDIT house revenue
        5. Insert inside a savepoint; losing the unique-index race is a no-op

        Returns:
            The two entries written, or None when nothing was posted
        """
        order = await order_source.get_order(uow, order_id)
        if order is None:
            logger.info("Order not found, sale not recorded", extra={"order_id": order_id})
            return None

        existing = await LedgerStore.find_order_revenue(uow, order.restaurant_id, order.id)
        if existing is not None:
            logger.info("Order sale already recorded", extra={"order_id": order.id})
            return None

        amount = to_money(order.total, "total")
        if amount <= ZERO:
            logger.info("Order has no value to post", extra={"order_id": order.id, "total": str(amount)})
            return None

        rider_order = order.type == OrderType.DELIVERY and order.assigned_driver_id
        debit_account = order.assigned_driver_id if rider_order else HOUSE_DRAWER

        group = PostingGroup(
            restaurant_id=order.restaurant_id,
            reference_type=ReferenceType.ORDER,
            reference_id=order.id,
            processed_by=order.last_action_by,
        )
        if rider_order:
            group.debit(debit_account, amount, f"Rider cash due for order {order.order_number or order.id}")
        else:
            group.debit(debit_account, amount, f"Cash sale {order.order_number or order.id}")
        group.credit(HOUSE_REVENUE, amount, f"Revenue for order {order.order_number or order.id}")

        try:
            async with uow.savepoint():
                entries = await LedgerStore.append(uow, group)
        except IntegrityError:
            logger.info("Order sale recorded concurrently, skipping", extra={"order_id": order.id})
            return None

        logger.info(
            "Order sale recorded",
            extra={
                "order_id": order.id,
                "restaurant_id": order.restaurant_id,
                "amount": str(amount),
                "rider_id": debit_account,
            }
        )
        return entries

    @staticmethod
    async def record_rider_settlement(
        uow: UnitOfWork,
        restaurant_id: str,
        rider_id: str,
        amount_received,
        order_ids: list[str],
        processed_by: Optional[str],
        settlement_id: Optional[str] = None
    ) -> list[LedgerEntry]:
        """
        Cash handed in by a rider: DEBIT drawer, CREDIT rider.

        Raises:
            ValidationError: amount not greater than zero, or no rider account
        """
        amount = require_positive(amount_received, "amount_received")
        _require_rider(rider_id)
        settlement_id = settlement_id or new_uuid()
        order_ids = list(order_ids or [])

        group = PostingGroup(
            restaurant_id=restaurant_id,
            reference_type=ReferenceType.SETTLEMENT,
            reference_id=settlement_id,
            processed_by=processed_by,
        )
        group.debit(HOUSE_DRAWER, amount, f"Cash received from rider for {len(order_ids)} orders")
        group.credit(rider_id, amount, "Rider cash debt settled")

        entries = await LedgerStore.append(uow, group)

        await audit.log_event(
            uow,
            restaurant_id=restaurant_id,
            action=AuditAction.RIDER_SETTLEMENT_RECORDED,
            actor_id=processed_by,
            entity_type="RIDER",
            entity_id=rider_id,
            metadata={"settlement_id": settlement_id, "amount": amount, "order_ids": order_ids},
        )

        logger.info(
            "Rider settlement recorded",
            extra={"restaurant_id": restaurant_id, "rider_id": rider_id, "amount": str(amount)}
        )
        return entries

    @staticmethod
    async def record_payout(
        uow: UnitOfWork,
        restaurant_id: str,
        amount,
        category: str,
        notes: Optional[str],
        processed_by: Optional[str],
        reference_id: Optional[str] = None
    ) -> list[LedgerEntry]:
        """
        Cash taken out of the drawer: CREDIT drawer, DEBIT house expenses.

        Raises:
            ValidationError: amount not greater than zero
        """
        amount = require_positive(amount)

        description = f"Payout: {category}"
        if notes:
            description = f"{description} - {notes}"

        group = PostingGroup(
            restaurant_id=restaurant_id,
            reference_type=ReferenceType.PAYOUT,
            reference_id=reference_id,
            processed_by=processed_by,
        )
        group.credit(HOUSE_DRAWER, amount, description[:255])
        group.debit(HOUSE_EXPENSES, amount, description[:255])

        entries = await LedgerStore.append(uow, group)

        logger.info(
            "Payout recorded",
            extra={"restaurant_id": restaurant_id, "category": category, "amount": str(amount)}
        )
        return entries

    @staticmethod
    async def process_payout(
        uow: UnitOfWork,
        restaurant_id: str,
        amount,
        category: str,
        notes: Optional[str],
        processed_by: str
    ) -> Payout:
        """Persist a payout record and its posting group together."""
        amount = require_positive(amount)
        if not category:
            raise ValidationError("Payout category is required", details={"field": "category"})

        payout = Payout(
            restaurant_id=restaurant_id,
            amount=amount,
            category=category,
            notes=notes,
            processed_by=processed_by,
        )
        uow.session.add(payout)
        await uow.flush()

        await PostingEngine.record_payout(
            uow, restaurant_id, amount, category, notes, processed_by, reference_id=payout.id
        )

        await audit.log_event(
            uow,
            restaurant_id=restaurant_id,
            action=AuditAction.PAYOUT_RECORDED,
            actor_id=processed_by,
            entity_type="PAYOUT",
            entity_id=payout.id,
            metadata={"amount": amount, "category": category},
        )
        return payout

    @staticmethod
    async def record_float_issue(
        uow: UnitOfWork,
        restaurant_id: str,
        rider_id: str,
        amount,
        processed_by: Optional[str],
        reference_id: Optional[str] = None
    ) -> Optional[list[LedgerEntry]]:
        """
        Change handed to a rider: CREDIT drawer, DEBIT rider.

        A zero float posts nothing and returns None.

        Raises:
            ValidationError: negative amount, or no rider account
        """
        amount = require_non_negative(amount)
        if amount == ZERO:
            return None
        _require_rider(rider_id)

        group = PostingGroup(
            restaurant_id=restaurant_id,
            reference_type=ReferenceType.SETTLEMENT,
            reference_id=reference_id,
            processed_by=processed_by,
        )
        group.credit(HOUSE_DRAWER, amount, "Float issued to rider")
        group.debit(rider_id, amount, "Rider float received")

        entries = await LedgerStore.append(uow, group)

        await audit.log_event(
            uow,
            restaurant_id=restaurant_id,
            action=AuditAction.FLOAT_ISSUED,
            actor_id=processed_by,
            entity_type="RIDER",
            entity_id=rider_id,
            metadata={"amount": amount, "reference_id": reference_id},
        )

        logger.info(
            "Float issued",
            extra={"restaurant_id": restaurant_id, "rider_id": rider_id, "amount": str(amount)}
        )
        return entries

    @staticmethod
    async def record_shift_float(
        uow: UnitOfWork,
        restaurant_id: str,
        rider_id: str,
        amount,
        processed_by: Optional[str],
        shift_id: str
    ) -> Optional[list[LedgerEntry]]:
        """Opening float of a rider shift. Zero posts nothing."""
        amount = require_non_negative(amount, "opening_float")
        if amount == ZERO:
            return None
        _require_rider(rider_id)

        group = PostingGroup(
            restaurant_id=restaurant_id,
            reference_type=ReferenceType.RIDER_SHIFT,
            reference_id=shift_id,
            processed_by=processed_by,
        )
        group.credit(HOUSE_DRAWER, amount, "Shift float issued to rider")
        group.debit(rider_id, amount, "Shift opening float")

        return await LedgerStore.append(uow, group)

    @staticmethod
    async def record_opening_balance(
        uow: UnitOfWork,
        restaurant_id: str,
        amount,
        processed_by: Optional[str],
        session_id: str
    ) -> Optional[list[LedgerEntry]]:
        """Cash placed in the drawer when a session opens. Zero posts nothing."""
        amount = require_non_negative(amount, "opening_balance")
        if amount == ZERO:
            return None

        group = PostingGroup(
            restaurant_id=restaurant_id,
            reference_type=ReferenceType.OPENING_BALANCE,
            reference_id=session_id,
            processed_by=processed_by,
        )
        group.debit(HOUSE_DRAWER, amount, "Drawer opening balance")
        group.credit(HOUSE_SAFE, amount, "Opening float moved to drawer")

        return await LedgerStore.append(uow, group)

"""
Order source.

Read-only queries against the order subsystem's tables. Nothing in this
backend mutates an order.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.models.order import Order
from pos_ledger.app.models.order_enums import OrderStatus, PaymentStatus


async def get_order(uow: UnitOfWork, order_id: str) -> Optional[Order]:
    result = await uow.session.execute(select(Order).where(Order.id == order_id))
    return result.scalar_one_or_none()


async def list_closed_orders(
    uow: UnitOfWork,
    restaurant_id: str,
    start: datetime,
    end: datetime
) -> list[Order]:
    """
    CLOSED orders created inside ``[start, end]``, with items and payment
    transactions loaded.
    """
    stmt = (
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.transactions))
        .where(
            Order.restaurant_id == restaurant_id,
            Order.status == OrderStatus.CLOSED,
            Order.created_at >= start,
            Order.created_at <= end,
        )
        .order_by(Order.created_at)
    )
    result = await uow.session.execute(stmt)
    return list(result.scalars().all())


async def list_shift_orders(
    uow: UnitOfWork,
    shift_id: str,
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None
) -> list[Order]:
    """Orders attributed to a rider shift, optionally filtered."""
    stmt = select(Order).where(Order.rider_shift_id == shift_id)
    if status is not None:
        stmt = stmt.where(Order.status == status)
    if payment_status is not None:
        stmt = stmt.where(Order.payment_status == payment_status)

    result = await uow.session.execute(stmt.order_by(Order.created_at))
    return list(result.scalars().all())

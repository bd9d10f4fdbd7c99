"""
Shared test data helpers.
"""

from decimal import Decimal

from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.models.order import Order, OrderItem, PaymentTransaction
from pos_ledger.app.models.order_enums import OrderStatus, OrderType, PaymentStatus

RESTAURANT_ID = "rest-0001"
OTHER_RESTAURANT_ID = "rest-0002"
STAFF_ID = "staff-0001"
RIDER_ID = "rider-0001"


async def create_order(
    total,
    restaurant_id: str = RESTAURANT_ID,
    order_type: OrderType = OrderType.DINE_IN,
    status: OrderStatus = OrderStatus.CLOSED,
    payment_status: PaymentStatus = PaymentStatus.PAID,
    tax=0,
    service_charge=0,
    delivery_fee=0,
    discount=0,
    assigned_driver_id: str = None,
    rider_shift_id: str = None,
    items=(),
    payments=(),
    order_number: str = None
) -> str:
    """
    Insert an order the way the order subsystem would and return its id.

    ``items`` is a sequence of (category, total_price); ``payments`` of
    (payment_method, amount).
    """
    async with UnitOfWork() as uow:
        order = Order(
            restaurant_id=restaurant_id,
            order_number=order_number,
            type=order_type,
            status=status,
            payment_status=payment_status,
            total=Decimal(str(total)),
            tax=Decimal(str(tax)),
            service_charge=Decimal(str(service_charge)),
            delivery_fee=Decimal(str(delivery_fee)),
            discount=Decimal(str(discount)),
            assigned_driver_id=assigned_driver_id,
            rider_shift_id=rider_shift_id,
            last_action_by=STAFF_ID,
        )
        uow.session.add(order)
        await uow.flush()

        for category, total_price in items:
            uow.session.add(OrderItem(
                order_id=order.id,
                item_name=f"{category or 'Misc'} item",
                category=category,
                quantity=1,
                unit_price=Decimal(str(total_price)),
                total_price=Decimal(str(total_price)),
            ))

        for method, amount in payments:
            uow.session.add(PaymentTransaction(
                restaurant_id=restaurant_id,
                order_id=order.id,
                amount=Decimal(str(amount)),
                payment_method=method,
                status="COMPLETED",
            ))

        return order.id



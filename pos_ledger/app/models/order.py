"""
Order subsystem models (read-only mirror).

The order service owns these tables. The ledger reads order totals, line
items and payment transactions from them and never writes.
"""

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship

from pos_ledger.app.db.columns import Money, new_uuid, utc_now
from pos_ledger.app.db.session import Base
from pos_ledger.app.models.order_enums import OrderType, OrderStatus, PaymentStatus


class Order(Base):
    """
    Order model.

    Only the fields the ledger consumes are mapped.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_uuid)
    restaurant_id = Column(String(36), nullable=False, index=True)
    order_number = Column(String(20), nullable=True)

    type = Column(Enum(OrderType), nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, index=True)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)

    # Financials
    total = Column(Money, nullable=False, default=0)
    tax = Column(Money, nullable=True, default=0)
    service_charge = Column(Money, nullable=True, default=0)
    delivery_fee = Column(Money, nullable=True, default=0)
    discount = Column(Money, nullable=True, default=0)

    # Delivery
    assigned_driver_id = Column(String(36), nullable=True, index=True)
    rider_shift_id = Column(String(36), nullable=True, index=True)

    last_action_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    items = relationship("OrderItem", back_populates="order", lazy="raise")
    transactions = relationship("PaymentTransaction", back_populates="order", lazy="raise")

    def __repr__(self):
        return f"<Order(id={self.id}, type='{self.type.value}', status='{self.status.value}', total={self.total})>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=new_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    item_name = Column(String(255), nullable=True)
    category = Column(String(100), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Money, nullable=False)
    total_price = Column(Money, nullable=False)

    order = relationship("Order", back_populates="items")


class PaymentTransaction(Base):
    """Payment captured against an order (``transactions`` table)."""
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    restaurant_id = Column(String(36), nullable=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=True, index=True)
    amount = Column(Money, nullable=False)
    payment_method = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=True)

    order = relationship("Order", back_populates="transactions")

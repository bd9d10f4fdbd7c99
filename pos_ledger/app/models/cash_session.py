"""
Cash Session database model.

A bounded window over the house cash drawer, reconciled at close.
"""

from sqlalchemy import Column, String, DateTime, Enum, Index, Text, text

from pos_ledger.app.db.columns import Money, new_uuid, utc_now
from pos_ledger.app.db.session import Base
from pos_ledger.app.models.ledger_enums import CashSessionStatus

OPEN_PREDICATE = text("status = 'OPEN'")


class CashSession(Base):
    """
    Cash Session model.

    Lifecycle: OPEN -> CLOSED. Closing freezes every reconciliation field;
    a session is never reopened or deleted.
    """
    __tablename__ = "cash_sessions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    restaurant_id = Column(String(36), nullable=False, index=True)

    # Opening
    opened_by = Column(String(36), nullable=False)
    opening_balance = Column(Money, nullable=False)
    opened_at = Column(DateTime, default=utc_now, nullable=False)

    # Closing (set once)
    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(String(36), nullable=True)
    expected_balance = Column(Money, nullable=True)
    actual_balance = Column(Money, nullable=True)
    variance = Column(Money, nullable=True)  # actual - expected

    status = Column(Enum(CashSessionStatus), default=CashSessionStatus.OPEN, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    # Unique constraint: only one open session per restaurant
    __table_args__ = (
        Index(
            "uq_cash_sessions_open_restaurant",
            "restaurant_id",
            unique=True,
            sqlite_where=OPEN_PREDICATE,
            postgresql_where=OPEN_PREDICATE,
        ),
    )

    def __repr__(self):
        return f"<CashSession(id={self.id}, restaurant_id={self.restaurant_id}, status='{self.status.value}')>"

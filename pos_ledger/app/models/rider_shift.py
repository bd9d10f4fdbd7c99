"""
Rider Shift database model.

The cash-in-hand window of a single delivery rider.
"""

from sqlalchemy import Column, String, DateTime, Enum, Index, Text, text

from pos_ledger.app.db.columns import Money, new_uuid, utc_now
from pos_ledger.app.db.session import Base
from pos_ledger.app.models.ledger_enums import RiderShiftStatus

OPEN_PREDICATE = text("status = 'OPEN'")


class RiderShift(Base):
    """
    Rider Shift model.

    Tracks the float a rider leaves with against the cash they hand back.
    Orders are attributed to a shift through ``orders.rider_shift_id``.
    """
    __tablename__ = "rider_shifts"

    id = Column(String(36), primary_key=True, default=new_uuid)
    restaurant_id = Column(String(36), nullable=False, index=True)
    rider_id = Column(String(36), nullable=False, index=True)

    # Opening
    opened_by = Column(String(36), nullable=False)
    opened_at = Column(DateTime, default=utc_now, nullable=False)
    opening_float = Column(Money, nullable=False)

    # Closing (set once)
    closed_at = Column(DateTime, nullable=True)
    closed_by = Column(String(36), nullable=True)
    closing_cash_received = Column(Money, nullable=True)
    expected_cash = Column(Money, nullable=True)
    cash_difference = Column(Money, nullable=True)  # received - expected

    status = Column(Enum(RiderShiftStatus), default=RiderShiftStatus.OPEN, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    # Unique constraint: only one open shift per rider per restaurant
    __table_args__ = (
        Index(
            "uq_rider_shifts_open_rider",
            "restaurant_id",
            "rider_id",
            unique=True,
            sqlite_where=OPEN_PREDICATE,
            postgresql_where=OPEN_PREDICATE,
        ),
    )

    def __repr__(self):
        return f"<RiderShift(id={self.id}, rider_id={self.rider_id}, status='{self.status.value}')>"

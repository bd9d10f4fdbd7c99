"""
Payout database model.

Cash taken out of the drawer for an expense, recorded next to its posting group.
"""

from sqlalchemy import Column, String, DateTime, Text

from pos_ledger.app.db.columns import Money, new_uuid, utc_now
from pos_ledger.app.db.session import Base


class Payout(Base):
    __tablename__ = "payouts"

    id = Column(String(36), primary_key=True, default=new_uuid)
    restaurant_id = Column(String(36), nullable=False, index=True)

    amount = Column(Money, nullable=False)
    category = Column(String(50), nullable=False)
    notes = Column(Text, nullable=True)
    processed_by = Column(String(36), nullable=False)
    reference_id = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<Payout(id={self.id}, category='{self.category}', amount={self.amount})>"

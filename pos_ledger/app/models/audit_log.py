"""
Audit Log Database Model.

Tracks manager actions on cash sessions, rider shifts and payouts.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON

from pos_ledger.app.db.columns import utc_now
from pos_ledger.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - CASH_SESSION_OPENED / CASH_SESSION_CLOSED
    - RIDER_SHIFT_OPENED / RIDER_SHIFT_CLOSED
    - PAYOUT_RECORDED / RIDER_SETTLEMENT_RECORDED / FLOAT_ISSUED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(String(36), nullable=False, index=True)

    # Who performed the action (None for system actions)
    actor_id = Column(String(36), index=True, nullable=True)

    # What action was performed, and on what
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(36), nullable=True, index=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime, default=utc_now, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity_type}:{self.entity_id})>"

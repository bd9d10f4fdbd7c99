"""
Ledger Entry database model.

Immutable double-entry accounting records.
"""

from sqlalchemy import Column, String, DateTime, Enum, Index, text, event
from sqlalchemy.orm import Session

from pos_ledger.app.core.exceptions import ConsistencyError
from pos_ledger.app.db.columns import Money, new_uuid, utc_now
from pos_ledger.app.db.session import Base
from pos_ledger.app.models.ledger_enums import TransactionType, ReferenceType

# Revenue for an order may be credited only once per restaurant
ORDER_REVENUE_PREDICATE = text("reference_type = 'ORDER' AND transaction_type = 'CREDIT'")


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Immutable record of a single signed money movement.
    Double-entry principle: every business event writes one posting group of
    two or more entries whose debits equal their credits.
    NO updates or deletions allowed.
    """
    __tablename__ = "ledger_entries"

    id = Column(String(36), primary_key=True, default=new_uuid)

    # Tenant scope
    restaurant_id = Column(String(36), nullable=False, index=True)

    # Entries written together for one business event
    posting_group_id = Column(String(36), nullable=False, index=True)

    # NULL is the house cash drawer; otherwise a rider id or a house virtual account
    account_id = Column(String(64), nullable=True, index=True)

    # Entry details
    transaction_type = Column(Enum(TransactionType), nullable=False)
    amount = Column(Money, nullable=False)
    reference_type = Column(Enum(ReferenceType), nullable=False, index=True)
    reference_id = Column(String(36), nullable=True, index=True)
    description = Column(String(255), nullable=True)
    processed_by = Column(String(36), nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)

    __table_args__ = (
        Index(
            "uq_ledger_entries_order_revenue",
            "restaurant_id",
            "reference_id",
            unique=True,
            sqlite_where=ORDER_REVENUE_PREDICATE,
            postgresql_where=ORDER_REVENUE_PREDICATE,
        ),
        Index("ix_ledger_entries_restaurant_created", "restaurant_id", "created_at"),
    )

    @property
    def signed_amount(self):
        """Amount with the balance sign convention applied (DEBIT +, CREDIT -)."""
        if self.transaction_type == TransactionType.DEBIT:
            return self.amount
        return -self.amount

    def __repr__(self):
        return (
            f"<LedgerEntry(id={self.id}, type='{self.transaction_type.value}', "
            f"ref='{self.reference_type.value}', amount={self.amount})>"
        )


@event.listens_for(Session, "before_flush")
def _reject_ledger_mutation(session, flush_context, instances):
    """Ledger rows are append-only."""
    for obj in session.deleted:
        if isinstance(obj, LedgerEntry):
            raise ConsistencyError("Ledger entries cannot be deleted", details={"entry_id": obj.id})
    for obj in session.dirty:
        if isinstance(obj, LedgerEntry) and session.is_modified(obj):
            raise ConsistencyError("Ledger entries cannot be modified", details={"entry_id": obj.id})

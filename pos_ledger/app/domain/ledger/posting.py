"""
Posting groups.

A posting group is the set of entries one business event writes. It is
assembled in memory, checked for balance, and only then handed to the
LedgerStore.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from pos_ledger.app.core.exceptions import ConsistencyError
from pos_ledger.app.db.columns import new_uuid
from pos_ledger.app.domain.ledger.money import ZERO, to_money
from pos_ledger.app.models.ledger_enums import ReferenceType, TransactionType


@dataclass
class PostingLine:
    """One side of a posting group."""

    account_id: Optional[str]  # None is the house drawer
    transaction_type: TransactionType
    amount: Decimal
    description: Optional[str] = None


@dataclass
class PostingGroup:
    """
    Entries for a single business event.

    Debits must equal credits and every line must move a positive amount.

    Usage:
        group = PostingGroup(restaurant_id, ReferenceType.SETTLEMENT, reference_id=settlement_id)
        group.debit(HOUSE_DRAWER, amount, "Cash received from rider")
        group.credit(rider_id, amount, "Rider debt reduced")
    """

    restaurant_id: str
    reference_type: ReferenceType
    reference_id: Optional[str] = None
    processed_by: Optional[str] = None
    posting_group_id: str = field(default_factory=new_uuid)
    lines: list[PostingLine] = field(default_factory=list)

    def debit(self, account_id: Optional[str], amount, description: str = None) -> "PostingGroup":
        self.lines.append(PostingLine(account_id, TransactionType.DEBIT, to_money(amount), description))
        return self

    def credit(self, account_id: Optional[str], amount, description: str = None) -> "PostingGroup":
        self.lines.append(PostingLine(account_id, TransactionType.CREDIT, to_money(amount), description))
        return self

    @property
    def total_debits(self) -> Decimal:
        return sum((line.amount for line in self.lines if line.transaction_type == TransactionType.DEBIT), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.amount for line in self.lines if line.transaction_type == TransactionType.CREDIT), ZERO)

    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    def validate(self) -> None:
        """
        Raises:
            ConsistencyError: fewer than two lines, a non-positive line, or
                debits that do not equal credits
        """
        details = {
            "posting_group_id": self.posting_group_id,
            "reference_type": self.reference_type.value,
            "reference_id": self.reference_id,
        }

        if len(self.lines) < 2:
            raise ConsistencyError("Posting group needs at least two entries", details=details)

        if any(line.amount <= ZERO for line in self.lines):
            raise ConsistencyError("Posting group contains a non-positive amount", details=details)

        if not self.is_balanced():
            raise ConsistencyError(
                "Posting group does not balance",
                details={
                    **details,
                    "debits": str(self.total_debits),
                    "credits": str(self.total_credits),
                },
            )

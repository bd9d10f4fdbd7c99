"""
Balance Calculator.

Balances are never stored; they are replayed from the ledger on request.
balance(account) = sum(DEBIT) - sum(CREDIT)
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from pos_ledger.app.core.exceptions import ConsistencyError
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.ledger.ledger_store import LedgerStore
from pos_ledger.app.domain.ledger.money import ZERO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerTotals:
    total_debits: Decimal
    total_credits: Decimal

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits


class BalanceCalculator:

    @staticmethod
    async def get_balance(uow: UnitOfWork, restaurant_id: str, account_id: Optional[str]) -> Decimal:
        """
        Current balance of one account. ``account_id=None`` is the house drawer.

        Positive for a rider means the rider owes the restaurant.
        """
        entries = await LedgerStore.entries_for_account(uow, restaurant_id, account_id)
        return sum((entry.signed_amount for entry in entries), ZERO)

    @staticmethod
    async def get_ledger_totals(uow: UnitOfWork, restaurant_id: str) -> LedgerTotals:
        debits, credits = await LedgerStore.sum_by_type(uow, restaurant_id)
        return LedgerTotals(total_debits=debits, total_credits=credits)

    @staticmethod
    async def assert_balanced(uow: UnitOfWork, restaurant_id: str) -> LedgerTotals:
        """
        Verify the ledger of a restaurant nets to zero, globally and per group.

        Raises:
            ConsistencyError: totals differ or a posting group is unbalanced
        """
        totals = await BalanceCalculator.get_ledger_totals(uow, restaurant_id)
        unbalanced = await LedgerStore.find_unbalanced_groups(uow, restaurant_id)

        if totals.difference != ZERO or unbalanced:
            logger.error(
                "Ledger out of balance",
                extra={
                    "restaurant_id": restaurant_id,
                    "difference": str(totals.difference),
                    "unbalanced_groups": len(unbalanced),
                }
            )
            raise ConsistencyError(
                "Ledger does not balance",
                details={
                    "restaurant_id": restaurant_id,
                    "total_debits": str(totals.total_debits),
                    "total_credits": str(totals.total_credits),
                    "unbalanced_groups": unbalanced,
                }
            )

        return totals

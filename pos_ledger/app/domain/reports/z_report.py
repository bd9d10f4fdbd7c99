"""
Report Generator.

End-of-day (Z) report for a cash session. Read-only: aggregates the CLOSED
orders and the ledger entries that fall inside the session window.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pos_ledger.app.core.exceptions import NotFoundError
from pos_ledger.app.db.columns import utc_now
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.cash.cash_session_manager import CashSessionManager, classify_drawer_movements
from pos_ledger.app.domain.ledger.ledger_store import LedgerStore
from pos_ledger.app.domain.ledger.money import ZERO, to_money
from pos_ledger.app.models.cash_session import CashSession
from pos_ledger.app.models.ledger_enums import CashSessionStatus
from pos_ledger.app.services import order_source

UNCATEGORIZED = "Uncategorized"


@dataclass
class ReportMetadata:
    session_id: str
    opened_at: datetime
    closed_at: Optional[datetime]
    status: CashSessionStatus
    variance: Optional[Decimal]


@dataclass
class ReportSummary:
    gross_sales: Decimal = ZERO
    net_sales: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_service_charge: Decimal = ZERO
    total_delivery_fees: Decimal = ZERO
    total_discounts: Decimal = ZERO
    order_count: int = 0


@dataclass
class CashFlow:
    opening_float: Decimal
    payouts: Decimal
    rider_settlements: Decimal
    expected_cash: Decimal
    actual_cash: Optional[Decimal]  # None while the session is open


@dataclass
class ZReport:
    metadata: ReportMetadata
    summary: ReportSummary
    cash_flow: CashFlow
    payment_methods: dict[str, Decimal] = field(default_factory=dict)
    order_types: dict[str, int] = field(default_factory=dict)
    category_breakdown: dict[str, Decimal] = field(default_factory=dict)
    hourly_sales: dict[int, Decimal] = field(default_factory=dict)


def _add(bucket: dict, key, amount: Decimal) -> None:
    bucket[key] = bucket.get(key, ZERO) + amount


class ReportGenerator:

    @staticmethod
    async def get_z_report(uow: UnitOfWork, session_id: str) -> ZReport:
        """
        Build the Z-report of a session, open or closed.

        Window: [opened_at, closed_at], or up to now while the session is open.

        Raises:
            NotFoundError: session does not exist
        """
        session = await uow.session.get(CashSession, session_id)
        if session is None:
            raise NotFoundError("Cash session", session_id)

        end = session.closed_at or utc_now()
        orders = await order_source.list_closed_orders(uow, session.restaurant_id, session.opened_at, end)
        entries = await LedgerStore.entries_in_window(uow, session.restaurant_id, session.opened_at, end)

        summary = ReportSummary(order_count=len(orders))
        payment_methods: dict[str, Decimal] = {}
        order_types: dict[str, int] = {}
        category_breakdown: dict[str, Decimal] = {}
        hourly_sales: dict[int, Decimal] = {}

        for order in orders:
            total = to_money(order.total, "total")
            summary.gross_sales += total
            summary.total_tax += to_money(order.tax or 0, "tax")
            summary.total_service_charge += to_money(order.service_charge or 0, "service_charge")
            summary.total_delivery_fees += to_money(order.delivery_fee or 0, "delivery_fee")
            summary.total_discounts += to_money(order.discount or 0, "discount")

            order_types[order.type.value] = order_types.get(order.type.value, 0) + 1
            _add(hourly_sales, order.created_at.hour, total)

            for item in order.items:
                _add(category_breakdown, item.category or UNCATEGORIZED, to_money(item.total_price, "total_price"))

            for payment in order.transactions:
                _add(payment_methods, payment.payment_method, to_money(payment.amount))

        summary.net_sales = (
            summary.gross_sales
            - summary.total_tax
            - summary.total_service_charge
            - summary.total_delivery_fees
        )

        movements = classify_drawer_movements(entries)

        if session.status == CashSessionStatus.CLOSED:
            expected_cash = session.expected_balance
            actual_cash = session.actual_balance
        else:
            metrics = await CashSessionManager.compute_metrics(uow, session)
            expected_cash = metrics.expected_cash
            actual_cash = None

        return ZReport(
            metadata=ReportMetadata(
                session_id=session.id,
                opened_at=session.opened_at,
                closed_at=session.closed_at,
                status=session.status,
                variance=session.variance,
            ),
            summary=summary,
            cash_flow=CashFlow(
                opening_float=session.opening_balance,
                payouts=movements.payouts,
                rider_settlements=movements.settlements,
                expected_cash=expected_cash,
                actual_cash=actual_cash,
            ),
            payment_methods=payment_methods,
            order_types=order_types,
            category_breakdown=category_breakdown,
            hourly_sales=dict(sorted(hourly_sales.items())),
        )

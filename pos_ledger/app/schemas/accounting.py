"""
Accounting Schemas.

Request and response bodies for the cash session, payout, ledger and
Z-report endpoints. Money fields are Decimal and serialize as strings.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, List, Dict

from pos_ledger.app.models.ledger_enums import CashSessionStatus, ReferenceType, TransactionType


class CashSessionOpen(BaseModel):
    """Schema for opening the drawer session."""
    staff_id: str = Field(..., min_length=1)
    opening_balance: Decimal = Field(default=Decimal("0"), ge=0)


class CashSessionClose(BaseModel):
    """Schema for closing the drawer session."""
    session_id: str = Field(..., min_length=1)
    staff_id: str = Field(..., min_length=1)
    actual_balance: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class CashSessionResponse(BaseModel):
    id: str
    restaurant_id: str
    status: CashSessionStatus
    opened_by: str
    opened_at: datetime
    opening_balance: Decimal
    closed_at: Optional[datetime]
    closed_by: Optional[str]
    expected_balance: Optional[Decimal]
    actual_balance: Optional[Decimal]
    variance: Optional[Decimal]
    notes: Optional[str]

    class Config:
        from_attributes = True


class SessionMetricsResponse(BaseModel):
    session_id: str
    restaurant_id: str
    opened_at: datetime
    opening_balance: Decimal
    revenue: Decimal
    cash_sales: Decimal
    settlements: Decimal
    payouts: Decimal
    adjustments: Decimal
    expected_cash: Decimal

    class Config:
        from_attributes = True


class ActiveSessionResponse(BaseModel):
    """Metrics of the open session; ``session`` is null when the drawer is closed."""
    session: Optional[SessionMetricsResponse] = None


class PayoutCreate(BaseModel):
    """Schema for taking cash out of the drawer."""
    amount: Decimal = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = None
    processed_by: str = Field(..., min_length=1)


class PayoutResponse(BaseModel):
    id: str
    restaurant_id: str
    amount: Decimal
    category: str
    notes: Optional[str]
    processed_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class LedgerEntryResponse(BaseModel):
    id: str
    posting_group_id: str
    account_id: Optional[str]
    transaction_type: TransactionType
    amount: Decimal
    reference_type: ReferenceType
    reference_id: Optional[str]
    description: Optional[str]
    processed_by: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogResponse(BaseModel):
    id: int
    actor_id: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[str]
    meta_data: Optional[Dict[str, Any]]
    timestamp: datetime

    class Config:
        from_attributes = True


class BalanceResponse(BaseModel):
    restaurant_id: str
    account_id: Optional[str]
    balance: Decimal


class OrderSaleResponse(BaseModel):
    """``recorded`` is false when the sale was already posted or the order is unknown."""
    order_id: str
    recorded: bool
    entries: List[LedgerEntryResponse] = []


class ReportMetadataResponse(BaseModel):
    session_id: str
    opened_at: datetime
    closed_at: Optional[datetime]
    status: CashSessionStatus
    variance: Optional[Decimal]

    class Config:
        from_attributes = True


class ReportSummaryResponse(BaseModel):
    gross_sales: Decimal
    net_sales: Decimal
    total_tax: Decimal
    total_service_charge: Decimal
    total_delivery_fees: Decimal
    total_discounts: Decimal
    order_count: int

    class Config:
        from_attributes = True


class CashFlowResponse(BaseModel):
    opening_float: Decimal
    payouts: Decimal
    rider_settlements: Decimal
    expected_cash: Optional[Decimal]
    actual_cash: Optional[Decimal]

    class Config:
        from_attributes = True


class ZReportResponse(BaseModel):
    metadata: ReportMetadataResponse
    summary: ReportSummaryResponse
    cash_flow: CashFlowResponse
    payment_methods: Dict[str, Decimal]
    order_types: Dict[str, int]
    category_breakdown: Dict[str, Decimal]
    hourly_sales: Dict[int, Decimal]

    class Config:
        from_attributes = True

"""
Rider Schemas.

Shift, settlement and float request/response bodies.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from pos_ledger.app.models.ledger_enums import RiderShiftStatus
from pos_ledger.app.models.order_enums import OrderStatus, OrderType
from pos_ledger.app.schemas.accounting import LedgerEntryResponse


class RiderSettlementCreate(BaseModel):
    """Cash handed in by a rider."""
    amount_received: Decimal = Field(..., gt=0)
    order_ids: List[str] = []
    processed_by: str = Field(..., min_length=1)
    settlement_id: Optional[str] = None


class FloatIssueCreate(BaseModel):
    """Change handed to a rider. Zero is accepted and posts nothing."""
    amount: Decimal = Field(..., ge=0)
    processed_by: str = Field(..., min_length=1)
    reference_id: Optional[str] = None


class PostingResponse(BaseModel):
    """Entries written by a posting; empty when the operation was a no-op."""
    entries: List[LedgerEntryResponse] = []


class RiderShiftOpen(BaseModel):
    rider_id: str = Field(..., min_length=1)
    opened_by: str = Field(..., min_length=1)
    opening_float: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None


class RiderShiftClose(BaseModel):
    shift_id: str = Field(..., min_length=1)
    closed_by: str = Field(..., min_length=1)
    closing_cash: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class RiderShiftResponse(BaseModel):
    id: str
    restaurant_id: str
    rider_id: str
    status: RiderShiftStatus
    opened_by: str
    opened_at: datetime
    opening_float: Decimal
    closed_at: Optional[datetime]
    closed_by: Optional[str]
    closing_cash_received: Optional[Decimal]
    expected_cash: Optional[Decimal]
    cash_difference: Optional[Decimal]
    notes: Optional[str]

    class Config:
        from_attributes = True


class ShiftMetricsResponse(BaseModel):
    shift_id: str
    rider_id: str
    status: RiderShiftStatus
    opened_at: datetime
    opening_float: Decimal
    order_count: int
    delivered_orders: int
    active_orders: int
    total_sales: Decimal
    expected_liability: Decimal
    rider_balance: Decimal

    class Config:
        from_attributes = True


class ActiveShiftResponse(BaseModel):
    """``shift`` and ``metrics`` are null when the rider has no open shift."""
    shift: Optional[RiderShiftResponse] = None
    metrics: Optional[ShiftMetricsResponse] = None


class PendingOrderResponse(BaseModel):
    id: str
    order_number: Optional[str]
    type: OrderType
    status: OrderStatus
    total: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class PendingSettlementSummary(BaseModel):
    order_count: int
    total_sales: Decimal
    opening_float: Decimal
    expected_liability: Decimal


class PendingSettlementResponse(BaseModel):
    active_shift: Optional[RiderShiftResponse] = None
    orders: List[PendingOrderResponse] = []
    summary: Optional[PendingSettlementSummary] = None

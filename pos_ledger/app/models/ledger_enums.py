"""
Ledger enumerations.
"""

import enum


class TransactionType(str, enum.Enum):
    """Ledger entry side."""
    DEBIT = "DEBIT"  # Increases what the account holds (drawer) or owes the house (rider)
    CREDIT = "CREDIT"  # Decreases it


class ReferenceType(str, enum.Enum):
    """Business event a ledger entry originates from."""
    ORDER = "ORDER"
    SETTLEMENT = "SETTLEMENT"
    PAYOUT = "PAYOUT"
    STOCK_IN = "STOCK_IN"
    OPENING_BALANCE = "OPENING_BALANCE"
    ADJUSTMENT = "ADJUSTMENT"
    RIDER_SHIFT = "RIDER_SHIFT"


class CashSessionStatus(str, enum.Enum):
    """Cash drawer session status. CLOSED is terminal."""
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class RiderShiftStatus(str, enum.Enum):
    """Rider shift status. CLOSED is terminal."""
    OPEN = "OPEN"
    CLOSED = "CLOSED"

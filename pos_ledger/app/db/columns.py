"""
Shared column helpers for the ledger models.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Numeric

# Fixed-point money column; values round-trip as Decimal
Money = Numeric(12, 2, asdecimal=True)


def new_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Naive UTC timestamp, the storage convention of every DateTime column here."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

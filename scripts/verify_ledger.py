"""
Ledger consistency check.

Replays the ledger of one restaurant against the configured database and
verifies that it nets to zero, globally and per posting group.

Usage:
    python scripts/verify_ledger.py <restaurant_id>

Exit code 0 when balanced, 1 otherwise.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pos_ledger.app.core.exceptions import ConsistencyError
from pos_ledger.app.core.observability import configure_logging
from pos_ledger.app.db.session import dispose_db, init_db
from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.domain.ledger.balance import BalanceCalculator


async def verify(restaurant_id: str) -> int:
    init_db()
    try:
        async with UnitOfWork() as uow:
            totals = await BalanceCalculator.assert_balanced(uow, restaurant_id)
    except ConsistencyError as e:
        print(f"❌ {e.message}")
        for key, value in e.details.items():
            print(f"   {key}: {value}")
        return 1
    finally:
        await dispose_db()

    print(f"✅ Ledger balanced for {restaurant_id}")
    print(f"   debits:  {totals.total_debits}")
    print(f"   credits: {totals.total_credits}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)

    configure_logging()
    sys.exit(asyncio.run(verify(sys.argv[1])))

"""
House accounts.

The drawer is the NULL account. The other house accounts are fixed virtual
sub-accounts; rider ids are the only other account ids the ledger sees.
"""

HOUSE_DRAWER = None
HOUSE_REVENUE = "house:revenue"
HOUSE_EXPENSES = "house:expenses"
HOUSE_SAFE = "house:safe"  # Counterpart of the drawer opening float

HOUSE_ACCOUNTS = (HOUSE_REVENUE, HOUSE_EXPENSES, HOUSE_SAFE)


def is_house_account(account_id) -> bool:
    return account_id is HOUSE_DRAWER or account_id in HOUSE_ACCOUNTS

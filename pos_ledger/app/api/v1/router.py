"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from pos_ledger.app.api.v1.endpoints import accounting, riders

router = APIRouter()

# Cash sessions, payouts, balances, ledger and Z-reports
router.include_router(accounting.router)

# Rider shifts, settlements and floats
router.include_router(riders.router)

"""
Audit logging service for cash-handling actions.

Audit rows are written inside the caller's unit of work, so they commit or
roll back together with the financial change they describe.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import select, desc

from pos_ledger.app.db.unit_of_work import UnitOfWork
from pos_ledger.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    CASH_SESSION_OPENED = "CASH_SESSION_OPENED"
    CASH_SESSION_CLOSED = "CASH_SESSION_CLOSED"
    RIDER_SHIFT_OPENED = "RIDER_SHIFT_OPENED"
    RIDER_SHIFT_CLOSED = "RIDER_SHIFT_CLOSED"
    PAYOUT_RECORDED = "PAYOUT_RECORDED"
    RIDER_SETTLEMENT_RECORDED = "RIDER_SETTLEMENT_RECORDED"
    FLOAT_ISSUED = "FLOAT_ISSUED"


def _jsonable(metadata: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if metadata is None:
        return None
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in metadata.items()}


async def log_event(
    uow: UnitOfWork,
    restaurant_id: str,
    action: str,
    actor_id: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Log a cash-handling event to the audit log.

    Args:
        uow: Unit of work the event belongs to
        restaurant_id: Tenant scope
        action: Action being performed (use AuditAction constants)
        actor_id: Staff member performing the action
        entity_type: Kind of record acted upon (CASH_SESSION, RIDER_SHIFT, ...)
        entity_id: ID of that record
        metadata: Additional context; Decimal values are stored as strings

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        restaurant_id=restaurant_id,
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=_jsonable(metadata),
    )

    uow.session.add(audit_log)
    await uow.flush()

    return audit_log


async def get_audit_trail(
    uow: UnitOfWork,
    restaurant_id: str,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = (
        select(AuditLog)
        .where(AuditLog.restaurant_id == restaurant_id)
        .order_by(desc(AuditLog.timestamp), desc(AuditLog.id))
    )

    if entity_id:
        query = query.where(AuditLog.entity_id == entity_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await uow.session.execute(query)
    return list(result.scalars().all())

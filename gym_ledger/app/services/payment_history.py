"""
Payment history service.

Appends immutable audit rows for every state-changing payment operation.
Rows are staged in the caller's transaction so they commit (or vanish)
together with the change they describe.
"""

import enum
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from gym_ledger.app.models.payment_history import PaymentHistory
from gym_ledger.app.models.ledger_enums import HistoryAction


def _json_safe(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def snapshot(obj: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """
    Capture selected attributes of a model as a JSON-serializable dict.

    Args:
        obj: Model instance (or any object with the attributes)
        fields: Attribute names to capture

    Returns:
        {field: value} with enums and dates flattened to strings
    """
    return {field: _json_safe(getattr(obj, field)) for field in fields}


async def record_event(
    db: AsyncSession,
    payment_id: int,
    action: HistoryAction,
    performed_by: int,
    old_value: Optional[Dict[str, Any]] = None,
    new_value: Optional[Dict[str, Any]] = None,
    notes: Optional[str] = None,
    ip_address: Optional[str] = None
) -> PaymentHistory:
    """
    Append a history entry for a payment.

    Does NOT commit: the entry belongs to the caller's transaction.

    Args:
        db: Database session
        payment_id: Payment being changed
        action: What happened (HistoryAction)
        performed_by: Staff ID responsible for the change
        old_value: Snapshot before the change
        new_value: Snapshot after the change
        notes: Free-text reason or comment
        ip_address: Client IP of the originating request

    Returns:
        Staged PaymentHistory instance
    """
    entry = PaymentHistory(
        payment_id=payment_id,
        action=action,
        old_value={k: _json_safe(v) for k, v in old_value.items()} if old_value else None,
        new_value={k: _json_safe(v) for k, v in new_value.items()} if new_value else None,
        performed_by=performed_by,
        notes=notes,
        ip_address=ip_address
    )

    db.add(entry)
    await db.flush()

    return entry


async def get_payment_history(
    db: AsyncSession,
    payment_id: int,
    action: Optional[HistoryAction] = None
) -> list[PaymentHistory]:
    """
    Retrieve the audit trail of a payment, oldest first.

    Args:
        db: Database session
        payment_id: Payment to read
        action: Optional action filter
    """
    query = select(PaymentHistory).where(PaymentHistory.payment_id == payment_id)

    if action:
        query = query.where(PaymentHistory.action == action)

    query = query.order_by(PaymentHistory.created_at, PaymentHistory.id)

    result = await db.execute(query)
    return list(result.scalars().all())

"""
Refund Eligibility Evaluator.

Answers "can this payment still be refunded, and by how much" from the
payment's status and the sum of refunds that already count against it
(APPROVED or PROCESSED). Always computed from the store, never cached.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.refund import Refund
from gym_ledger.app.models.ledger_enums import PaymentMethod, PaymentStatus
from gym_ledger.app.models.refund_enums import RefundMethod, RefundStatus
from gym_ledger.app.schemas.refund import RefundEligibility

# Refund states that consume the refundable amount
COUNTED_REFUND_STATUSES = (RefundStatus.APPROVED, RefundStatus.PROCESSED)

REASON_NOT_FOUND = "Payment not found"
REASON_NOT_COMPLETED = "Payment is not completed"
REASON_FULLY_REFUNDED = "Payment has already been fully refunded"


def to_money(value: float) -> float:
    """Round a money amount to cents so float sums compare exactly."""
    return round(float(value), 2)


def suggest_refund_method(payment_method: Optional[PaymentMethod]) -> RefundMethod:
    """Mirror the original payment method."""
    if payment_method == PaymentMethod.CARD:
        return RefundMethod.CARD_CANCEL
    if payment_method == PaymentMethod.TRANSFER:
        return RefundMethod.ACCOUNT_TRANSFER
    return RefundMethod.CASH


async def load_payment(db: AsyncSession, payment_id: int, lock: bool = False) -> Optional[Payment]:
    """
    Fetch a payment, optionally locking its row for the rest of the transaction.

    Row locks serialize concurrent refund and status mutations on the same
    payment (SELECT ... FOR UPDATE on PostgreSQL; on SQLite the engine opens
    transactions with BEGIN IMMEDIATE, see db.session.use_immediate_transactions).
    """
    query = select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def refunded_total(db: AsyncSession, payment_id: int, exclude_refund_id: Optional[int] = None) -> float:
    """Sum of APPROVED + PROCESSED refund amounts for a payment."""
    query = select(func.coalesce(func.sum(Refund.refund_amount), 0.0)).where(
        Refund.payment_id == payment_id,
        Refund.status.in_(COUNTED_REFUND_STATUSES)
    )
    if exclude_refund_id is not None:
        query = query.where(Refund.id != exclude_refund_id)
    return to_money((await db.execute(query)).scalar() or 0.0)


def evaluate_eligibility(payment: Optional[Payment], refunded: float) -> RefundEligibility:
    """Pure eligibility rule over a loaded payment and its counted refund total."""
    if payment is None:
        return RefundEligibility(
            eligible=False,
            reason=REASON_NOT_FOUND,
            max_refund_amount=0.0,
            suggested_method=RefundMethod.CASH
        )

    suggested = suggest_refund_method(payment.payment_method)

    if payment.status != PaymentStatus.COMPLETED:
        return RefundEligibility(
            eligible=False,
            reason=f"{REASON_NOT_COMPLETED} (status: {payment.status.value})",
            max_refund_amount=0.0,
            suggested_method=suggested
        )

    max_refund = to_money(payment.amount - refunded)
    if max_refund <= 0:
        return RefundEligibility(
            eligible=False,
            reason=REASON_FULLY_REFUNDED,
            max_refund_amount=0.0,
            suggested_method=suggested
        )

    return RefundEligibility(
        eligible=True,
        max_refund_amount=max_refund,
        suggested_method=suggested
    )


async def check_refund_eligibility(db: AsyncSession, payment_id: int, lock: bool = False) -> RefundEligibility:
    """
    Compute refund eligibility for a payment.

    Args:
        db: Database session
        payment_id: Payment to evaluate
        lock: Lock the payment row (use inside a write transaction)

    Returns:
        RefundEligibility with the maximum refundable amount
    """
    payment = await load_payment(db, payment_id, lock=lock)
    if payment is None:
        return evaluate_eligibility(None, 0.0)

    refunded = await refunded_total(db, payment_id)
    return evaluate_eligibility(payment, refunded)

"""
Refund Workflow Manager (Domain Logic).

State machine per refund:
    PENDING -> APPROVED -> PROCESSED
    PENDING -> REJECTED

Every mutation locks the parent payment row and re-evaluates the refund
invariant (approved + processed <= payment amount) inside the same
transaction as the write.
"""

import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from gym_ledger.app.core.config import settings
from gym_ledger.app.core.exceptions import ValidationError, NotFoundError, InvalidStateError
from gym_ledger.app.core.reliability import run_in_transaction
from gym_ledger.app.domain.refunds.eligibility import (
    load_payment, refunded_total, evaluate_eligibility, to_money
)
from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.refund import Refund
from gym_ledger.app.models.ledger_enums import PaymentStatus, HistoryAction
from gym_ledger.app.models.refund_enums import RefundStatus, RefundMethod
from gym_ledger.app.schemas.refund import RefundCreate, RefundDecision, RefundCreatedResponse
from gym_ledger.app.schemas.payment import ChangedResponse
from gym_ledger.app.services import directory
from gym_ledger.app.services.payment_history import record_event

logger = logging.getLogger(__name__)


class RefundService:

    @staticmethod
    async def _load_refund(db: AsyncSession, refund_id: int, lock: bool = False) -> Refund:
        query = select(Refund).where(Refund.id == refund_id).execution_options(populate_existing=True)
        if lock:
            query = query.with_for_update()
        refund = (await db.execute(query)).scalar_one_or_none()
        if not refund:
            raise NotFoundError("Refund", refund_id)
        return refund

    @staticmethod
    async def _lock_completed_payment(db: AsyncSession, refund: Refund) -> Payment:
        """Lock the refund's payment and require it to still be COMPLETED."""
        payment = await load_payment(db, refund.payment_id, lock=True)
        if not payment:
            raise NotFoundError("Payment", refund.payment_id)

        if payment.status != PaymentStatus.COMPLETED:
            raise InvalidStateError(
                "Payment", payment.id, payment.status.value,
                message=f"Payment {payment.payment_number} is {payment.status.value}; refund {refund.id} cannot proceed",
                required_state=PaymentStatus.COMPLETED.value
            )
        return payment

    @staticmethod
    def _check_within_amount(payment: Payment, counted: float, refund: Refund) -> None:
        if to_money(counted + refund.refund_amount) > to_money(payment.amount):
            raise ValidationError(
                f"Refund of {refund.refund_amount} would exceed the refundable amount of payment {payment.payment_number}",
                details={
                    "payment_id": payment.id,
                    "refund_id": refund.id,
                    "already_refunded": counted,
                    "max_refund_amount": max(to_money(payment.amount - counted), 0.0)
                }
            )

    @staticmethod
    async def request_refund(
        db: AsyncSession,
        data: RefundCreate,
        requester_id: int,
        ip_address: Optional[str] = None
    ) -> RefundCreatedResponse:
        """
        Open a PENDING refund against a payment.

        The eligibility check and the insert share one transaction, with the
        payment row locked, so concurrent requests cannot both pass the check.

        Raises:
            NotFoundError: Unknown payment or requester
            InvalidStateError: Payment not refundable (carries the eligibility reason)
            ValidationError: Amount out of bounds, missing account info
        """
        if data.refund_method == RefundMethod.ACCOUNT_TRANSFER and not (data.account_info or "").strip():
            raise ValidationError(
                "Account information is required for account transfer refunds",
                details={"field": "account_info"}
            )

        async def work() -> Refund:
            payment = await load_payment(db, data.payment_id, lock=True)
            if not payment:
                raise NotFoundError("Payment", data.payment_id)

            await directory.get_staff(db, requester_id)

            eligibility = evaluate_eligibility(payment, await refunded_total(db, payment.id))
            if not eligibility.eligible:
                logger.warning("Refund request rejected for payment %s: %s", payment.id, eligibility.reason)
                raise InvalidStateError(
                    "Payment", payment.id, payment.status.value,
                    message=eligibility.reason,
                    required_state=PaymentStatus.COMPLETED.value
                )

            if data.refund_amount <= 0 or to_money(data.refund_amount) > eligibility.max_refund_amount:
                raise ValidationError(
                    f"Refund amount must be greater than 0 and at most {eligibility.max_refund_amount}",
                    details={
                        "field": "refund_amount",
                        "requested": data.refund_amount,
                        "max_refund_amount": eligibility.max_refund_amount
                    }
                )

            refund = Refund(
                payment_id=payment.id,
                requested_by=requester_id,
                refund_amount=data.refund_amount,
                reason=data.reason,
                refund_method=data.refund_method,
                account_info=data.account_info,
                status=RefundStatus.PENDING,
                notes=data.notes
            )
            db.add(refund)
            await db.flush()

            await record_event(
                db,
                payment_id=payment.id,
                action=HistoryAction.REFUND_REQUESTED,
                performed_by=requester_id,
                new_value={
                    "refund_id": refund.id,
                    "refund_amount": refund.refund_amount,
                    "refund_method": refund.refund_method,
                    "status": refund.status
                },
                notes=data.reason,
                ip_address=ip_address
            )
            return refund

        refund = await run_in_transaction(db, work, "refund request")
        logger.info(
            "Refund %s requested on payment %s (amount=%s)",
            refund.id, refund.payment_id, refund.refund_amount
        )
        return RefundCreatedResponse(id=refund.id)

    @staticmethod
    async def decide(
        db: AsyncSession,
        refund_id: int,
        approve: bool,
        approver_id: int,
        notes: Optional[str] = None
    ) -> ChangedResponse:
        """
        Approve or reject a PENDING refund.

        Approval re-checks the refund invariant against the payment; the
        payment itself is not changed.

        Raises:
            NotFoundError: Unknown refund or approver
            InvalidStateError: Refund not PENDING, or payment no longer COMPLETED
            ValidationError: Approval would exceed the payment amount
        """
        async def work() -> Refund:
            refund = await RefundService._load_refund(db, refund_id, lock=True)

            if refund.status != RefundStatus.PENDING:
                raise InvalidStateError(
                    "Refund", refund_id, refund.status.value,
                    message=f"Refund {refund_id} is already {refund.status.value}",
                    required_state=RefundStatus.PENDING.value
                )

            await directory.get_staff(db, approver_id)

            if approve:
                payment = await RefundService._lock_completed_payment(db, refund)
                counted = await refunded_total(db, payment.id, exclude_refund_id=refund.id)
                RefundService._check_within_amount(payment, counted, refund)
                refund.status = RefundStatus.APPROVED
            else:
                refund.status = RefundStatus.REJECTED

            refund.approved_by = approver_id
            refund.approved_at = datetime.utcnow()
            if notes is not None:
                refund.notes = notes

            await db.flush()
            return refund

        refund = await run_in_transaction(db, work, "refund decision")
        logger.info("Refund %s %s by staff %s", refund.id, refund.status.value, approver_id)
        return ChangedResponse(changed=True)

    @staticmethod
    async def process(
        db: AsyncSession,
        refund_id: int,
        actor_id: int,
        notes: Optional[str] = None
    ) -> ChangedResponse:
        """
        Pay out an APPROVED refund.

        Flow (one transaction):
        1. Lock the refund and its payment
        2. Re-check the payment is COMPLETED and the invariant still holds
        3. Mark the refund PROCESSED
        4. Flip the payment to REFUNDED (always, or once fully refunded,
           per settings.refund_terminates_payment)
        5. Write the 'refunded' history entry

        Raises:
            NotFoundError: Unknown refund or actor
            InvalidStateError: Refund not APPROVED, or payment no longer COMPLETED
            ValidationError: Processing would exceed the payment amount
        """
        async def work() -> Refund:
            refund = await RefundService._load_refund(db, refund_id, lock=True)

            if refund.status != RefundStatus.APPROVED:
                raise InvalidStateError(
                    "Refund", refund_id, refund.status.value,
                    message=f"Refund {refund_id} must be approved before processing (status: {refund.status.value})",
                    required_state=RefundStatus.APPROVED.value
                )

            await directory.get_staff(db, actor_id)

            payment = await RefundService._lock_completed_payment(db, refund)
            counted = await refunded_total(db, payment.id, exclude_refund_id=refund.id)
            RefundService._check_within_amount(payment, counted, refund)

            refund.status = RefundStatus.PROCESSED
            refund.processed_at = datetime.utcnow()
            if notes is not None:
                refund.notes = notes

            old_status = payment.status
            if settings.refund_terminates_payment:
                payment.status = PaymentStatus.REFUNDED
            else:
                processed = (await db.execute(
                    select(func.coalesce(func.sum(Refund.refund_amount), 0.0)).where(
                        Refund.payment_id == payment.id,
                        Refund.status == RefundStatus.PROCESSED,
                        Refund.id != refund.id
                    )
                )).scalar() or 0.0
                if to_money(processed + refund.refund_amount) >= to_money(payment.amount):
                    payment.status = PaymentStatus.REFUNDED

            await record_event(
                db,
                payment_id=payment.id,
                action=HistoryAction.REFUNDED,
                performed_by=actor_id,
                old_value={"status": old_status},
                new_value={
                    "status": payment.status,
                    "refund_id": refund.id,
                    "refund_amount": refund.refund_amount
                },
                notes=notes or refund.reason
            )
            return refund

        refund = await run_in_transaction(db, work, "refund processing")
        logger.info(
            "Refund %s processed on payment %s (amount=%s)",
            refund.id, refund.payment_id, refund.refund_amount
        )
        return ChangedResponse(changed=True)

    @staticmethod
    async def update(
        db: AsyncSession,
        refund_id: int,
        decision: RefundDecision,
        actor_id: int
    ) -> ChangedResponse:
        """Route a status change to decide() or process()."""
        if decision.status == RefundStatus.APPROVED:
            return await RefundService.decide(db, refund_id, True, actor_id, decision.notes)
        if decision.status == RefundStatus.REJECTED:
            return await RefundService.decide(db, refund_id, False, actor_id, decision.notes)
        if decision.status == RefundStatus.PROCESSED:
            return await RefundService.process(db, refund_id, actor_id, decision.notes)

        raise ValidationError(
            f"A refund cannot be moved to {decision.status.value}",
            details={"field": "status", "allowed": ["approved", "rejected", "processed"]}
        )

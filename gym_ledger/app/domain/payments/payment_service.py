"""
Payment Command Service (Domain Logic).

Handles create / update / cancel of ledger payments.
Every command runs as a single transaction: numbering, the payment row,
its items, the derived record and the history entry commit together or
not at all.
"""

import logging
from datetime import date
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from gym_ledger.app.core.config import settings
from gym_ledger.app.core.exceptions import ValidationError, NotFoundError, InvalidStateError
from gym_ledger.app.core.reliability import run_in_transaction
from gym_ledger.app.domain.payments.payment_number import next_sequence_number
from gym_ledger.app.domain.payments.derived_records import synthesize_derived_record, derived_end_date
from gym_ledger.app.domain.refunds.eligibility import load_payment, refunded_total, to_money
from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.payment_item import PaymentItem
from gym_ledger.app.models.ledger_enums import PaymentType, PaymentStatus, HistoryAction
from gym_ledger.app.schemas.payment import PaymentCreate, PaymentUpdate, PaymentCreatedResponse, ChangedResponse
from gym_ledger.app.services import directory
from gym_ledger.app.services.payment_history import record_event, snapshot

logger = logging.getLogger(__name__)

# Fields captured in the 'created' history entry
CREATED_SNAPSHOT_FIELDS = (
    "payment_number", "member_id", "payment_type", "membership_type_id", "pt_package_id",
    "amount", "payment_method", "payment_date", "staff_id", "status",
    "locker_type", "expiry_date", "auto_renewal",
)

# Fields editable through update(); they can never be cleared
REQUIRED_UPDATE_FIELDS = ("amount", "payment_method", "payment_date")


class PaymentService:

    @staticmethod
    def validate_type_references(data: PaymentCreate) -> None:
        """
        Enforce the plan reference required (and forbidden) by each payment type.

        Raises:
            ValidationError: Missing or conflicting plan references
        """
        if data.payment_type == PaymentType.MEMBERSHIP:
            if data.membership_type_id is None:
                raise ValidationError(
                    "membership_type_id is required for membership payments",
                    details={"field": "membership_type_id"}
                )
            if data.pt_package_id is not None:
                raise ValidationError(
                    "pt_package_id is not allowed on membership payments",
                    details={"field": "pt_package_id"}
                )

        elif data.payment_type == PaymentType.PT:
            if data.pt_package_id is None:
                raise ValidationError(
                    "pt_package_id is required for PT payments",
                    details={"field": "pt_package_id"}
                )
            if data.membership_type_id is not None:
                raise ValidationError(
                    "membership_type_id is not allowed on PT payments",
                    details={"field": "membership_type_id"}
                )

        elif data.membership_type_id is not None or data.pt_package_id is not None:
            raise ValidationError(
                "Plan references are only allowed on membership and PT payments",
                details={"field": "membership_type_id" if data.membership_type_id is not None else "pt_package_id"}
            )

        # Lockers are sold as 'other' payments only
        if data.locker_type is not None and data.payment_type != PaymentType.OTHER:
            raise ValidationError(
                "locker_type is only allowed on other payments",
                details={"field": "locker_type"}
            )

    @staticmethod
    async def _resolve_amount(db: AsyncSession, data: PaymentCreate) -> float:
        """Explicit amount, else the item total, else the plan price."""
        if data.amount is not None:
            return data.amount
        if data.items:
            return sum(item.total_amount if item.total_amount is not None else item.quantity * item.unit_price
                       for item in data.items)
        if data.payment_type == PaymentType.MEMBERSHIP:
            return (await directory.get_membership_type(db, data.membership_type_id)).price
        if data.payment_type == PaymentType.PT:
            return (await directory.get_pt_package(db, data.pt_package_id)).price
        raise ValidationError("amount is required for this payment", details={"field": "amount"})

    @staticmethod
    async def create(
        db: AsyncSession,
        data: PaymentCreate,
        actor_id: Optional[int] = None,
        ip_address: Optional[str] = None
    ) -> PaymentCreatedResponse:
        """
        Record a payment.

        Flow (one transaction):
        1. Validate member, staff, trainer and plan references
        2. Generate the day's payment number
        3. Insert the Payment (COMPLETED) and its items
        4. Synthesize the derived record for the payment type
        5. Write the 'created' history entry

        Args:
            db: Transaction-scoped session
            data: Payment input
            actor_id: Staff performing the request (defaults to the recording staff)
            ip_address: Client IP recorded in the history entry

        Returns:
            ID and payment number of the new payment

        Raises:
            ValidationError: Missing or conflicting type references, bad amount
            NotFoundError: Unknown member, staff, trainer or plan
            TransactionError: Store failure; nothing was written
        """
        PaymentService.validate_type_references(data)

        async def work() -> Payment:
            # 1. References
            await directory.get_member(db, data.member_id)
            await directory.get_staff(db, data.staff_id, require_payment_permission=True)
            if data.trainer_id is not None:
                await directory.get_staff(db, data.trainer_id)
            amount = await PaymentService._resolve_amount(db, data)

            # 2. Number
            payment_number = await next_sequence_number(
                db, Payment.payment_number, settings.payment_number_prefix
            )

            # 3. Payment + items
            payment = Payment(
                payment_number=payment_number,
                member_id=data.member_id,
                payment_type=data.payment_type,
                membership_type_id=data.membership_type_id,
                pt_package_id=data.pt_package_id,
                amount=amount,
                payment_method=data.payment_method,
                payment_date=data.payment_date or date.today(),
                staff_id=data.staff_id,
                notes=data.notes,
                status=PaymentStatus.COMPLETED,
                locker_type=data.locker_type,
                expiry_date=data.expiry_date,
                auto_renewal=data.auto_renewal
            )
            db.add(payment)
            await db.flush()  # To get payment.id

            for item in data.items:
                db.add(PaymentItem(
                    payment_id=payment.id,
                    item_type=item.item_type,
                    item_subtype=item.item_subtype,
                    item_name=item.item_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_amount=item.total_amount if item.total_amount is not None else item.quantity * item.unit_price,
                    specifications=item.specifications
                ))

            # 4. Derived record
            record = await synthesize_derived_record(db, payment, trainer_id=data.trainer_id)
            if payment.expiry_date is None:
                payment.expiry_date = derived_end_date(record)

            # 5. Audit
            await record_event(
                db,
                payment_id=payment.id,
                action=HistoryAction.CREATED,
                performed_by=actor_id or data.staff_id,
                new_value=snapshot(payment, CREATED_SNAPSHOT_FIELDS),
                notes=data.notes,
                ip_address=ip_address
            )
            return payment

        payment = await run_in_transaction(db, work, "payment creation")

        logger.info(
            "Payment %s created (id=%s, type=%s, amount=%s)",
            payment.payment_number, payment.id, payment.payment_type.value, payment.amount
        )
        return PaymentCreatedResponse(id=payment.id, payment_number=payment.payment_number)

    @staticmethod
    async def update(
        db: AsyncSession,
        payment_id: int,
        data: PaymentUpdate,
        actor_id: int,
        ip_address: Optional[str] = None
    ) -> ChangedResponse:
        """
        Edit amount, method, date or notes of a COMPLETED payment.

        Derived records are left as they are. An update that changes nothing
        writes no history.

        Raises:
            NotFoundError: Unknown payment or actor
            InvalidStateError: Payment is REFUNDED or CANCELLED
            ValidationError: Clearing a required field, or an amount below the refunded total
        """
        requested = data.model_dump(exclude_unset=True)

        for field in REQUIRED_UPDATE_FIELDS:
            if field in requested and requested[field] is None:
                raise ValidationError(f"{field} cannot be cleared", details={"field": field})

        async def work() -> bool:
            payment = await load_payment(db, payment_id, lock=True)
            if not payment:
                raise NotFoundError("Payment", payment_id)

            if payment.status.is_terminal:
                raise InvalidStateError(
                    "Payment", payment_id, payment.status.value,
                    message=f"Payment {payment.payment_number} is {payment.status.value} and can no longer be edited",
                    required_state=PaymentStatus.COMPLETED.value
                )

            await directory.get_staff(db, actor_id)

            changes = {
                field: value for field, value in requested.items()
                if getattr(payment, field) != value
            }
            if not changes:
                return False

            if "amount" in changes:
                refunded = await refunded_total(db, payment_id)
                if to_money(changes["amount"]) < refunded:
                    raise ValidationError(
                        f"Amount cannot be lower than the already refunded {refunded}",
                        details={"payment_id": payment_id, "refunded_amount": refunded}
                    )

            old_value = snapshot(payment, changes)
            for field, value in changes.items():
                setattr(payment, field, value)

            await record_event(
                db,
                payment_id=payment.id,
                action=HistoryAction.UPDATED,
                performed_by=actor_id,
                old_value=old_value,
                new_value=snapshot(payment, changes),
                ip_address=ip_address
            )
            return True

        changed = await run_in_transaction(db, work, "payment update")
        if changed:
            logger.info("Payment %s updated by staff %s", payment_id, actor_id)
        return ChangedResponse(changed=changed)

    @staticmethod
    async def cancel(
        db: AsyncSession,
        payment_id: int,
        actor_id: int,
        reason: str,
        ip_address: Optional[str] = None
    ) -> ChangedResponse:
        """
        Cancel a COMPLETED payment (ledger-level; derived records are untouched).

        Raises:
            ValidationError: Blank reason
            NotFoundError: Unknown payment or actor
            InvalidStateError: Payment already REFUNDED or CANCELLED
        """
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required", details={"field": "reason"})

        async def work() -> bool:
            payment = await load_payment(db, payment_id, lock=True)
            if not payment:
                raise NotFoundError("Payment", payment_id)

            if payment.status != PaymentStatus.COMPLETED:
                raise InvalidStateError(
                    "Payment", payment_id, payment.status.value,
                    message=f"Payment {payment.payment_number} is already {payment.status.value}",
                    required_state=PaymentStatus.COMPLETED.value
                )

            await directory.get_staff(db, actor_id)

            payment.status = PaymentStatus.CANCELLED

            await record_event(
                db,
                payment_id=payment.id,
                action=HistoryAction.CANCELLED,
                performed_by=actor_id,
                old_value={"status": PaymentStatus.COMPLETED},
                new_value={"status": PaymentStatus.CANCELLED},
                notes=reason.strip(),
                ip_address=ip_address
            )
            return True

        changed = await run_in_transaction(db, work, "payment cancellation")
        logger.info("Payment %s cancelled by staff %s", payment_id, actor_id)
        return ChangedResponse(changed=changed)

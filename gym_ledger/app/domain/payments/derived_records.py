"""
Derived Record Synthesizer.

Turns a committed-to-be payment into the one secondary record its type implies:
- membership -> MembershipHistory (start + plan months)
- pt         -> PTMembership (start + validity days, fresh session counters)
- other with a locker type -> LockerAssignment (numbered, monthly fee)

Builders are pure; `synthesize_derived_record` stages the result in the
caller's transaction so a failure here aborts the whole payment.
"""

from datetime import date, timedelta
from typing import Optional, Union
from sqlalchemy.ext.asyncio import AsyncSession

from gym_ledger.app.core.config import settings
from gym_ledger.app.core.exceptions import ValidationError
from gym_ledger.app.domain.payments.payment_number import next_sequence_number
from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.membership_type import MembershipType
from gym_ledger.app.models.pt_package import PTPackage
from gym_ledger.app.models.membership_history import MembershipHistory
from gym_ledger.app.models.pt_membership import PTMembership
from gym_ledger.app.models.locker_assignment import LockerAssignment
from gym_ledger.app.models.ledger_enums import PaymentType
from gym_ledger.app.models.derived_enums import PTPackageStatus, LockerStatus
from gym_ledger.app.services import directory

DerivedRecord = Union[MembershipHistory, PTMembership, LockerAssignment]


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def months_between(start: date, end: date) -> int:
    """Whole months from start to end, never less than 1."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and add_months(start, months) > end:
        months -= 1
    return max(months, 1)


def build_membership_grant(payment: Payment, plan: MembershipType) -> MembershipHistory:
    return MembershipHistory(
        member_id=payment.member_id,
        membership_type_id=plan.id,
        payment_id=payment.id,
        start_date=payment.payment_date,
        end_date=add_months(payment.payment_date, plan.duration_months),
        is_active=True
    )


def build_pt_membership(payment: Payment, package: PTPackage, trainer_id: int) -> PTMembership:
    return PTMembership(
        member_id=payment.member_id,
        pt_package_id=package.id,
        payment_id=payment.id,
        trainer_id=trainer_id,
        total_sessions=package.session_count,
        used_sessions=0,
        remaining_sessions=package.session_count,
        start_date=payment.payment_date,
        expiry_date=payment.payment_date + timedelta(days=package.validity_days),
        status=PTPackageStatus.ACTIVE
    )


def build_locker_assignment(payment: Payment, locker_number: str) -> LockerAssignment:
    """
    Locker period runs from the payment date to the payment's expiry date
    (or the default locker term). The monthly fee spreads the amount evenly
    over the whole months of that period.
    """
    start = payment.payment_date
    end = payment.expiry_date or add_months(start, settings.default_locker_months)

    if end <= start:
        raise ValidationError(
            "Locker expiry date must be after the payment date",
            details={"payment_date": start.isoformat(), "expiry_date": end.isoformat()}
        )

    months = months_between(start, end)

    return LockerAssignment(
        member_id=payment.member_id,
        payment_id=payment.id,
        locker_number=locker_number,
        locker_type=payment.locker_type,
        start_date=start,
        end_date=end,
        monthly_fee=round(payment.amount / months, 2),
        status=LockerStatus.ACTIVE
    )


def derived_end_date(record: Optional[DerivedRecord]) -> Optional[date]:
    """The date the derived record runs out, used as the payment's expiry."""
    if isinstance(record, MembershipHistory):
        return record.end_date
    if isinstance(record, PTMembership):
        return record.expiry_date
    if isinstance(record, LockerAssignment):
        return record.end_date
    return None


async def synthesize_derived_record(
    db: AsyncSession,
    payment: Payment,
    trainer_id: Optional[int] = None
) -> Optional[DerivedRecord]:
    """
    Create the derived record for a flushed payment.

    Args:
        db: Session of the payment's transaction
        payment: Payment row with an ID assigned
        trainer_id: PT trainer override (defaults to the recording staff member)

    Returns:
        The staged derived record, or None for an 'other' payment without a locker

    Raises:
        NotFoundError / ValidationError: Unknown or inactive plan, bad locker period
    """
    record: Optional[DerivedRecord] = None

    if payment.payment_type == PaymentType.MEMBERSHIP:
        plan = await directory.get_membership_type(db, payment.membership_type_id)
        record = build_membership_grant(payment, plan)

    elif payment.payment_type == PaymentType.PT:
        package = await directory.get_pt_package(db, payment.pt_package_id)
        record = build_pt_membership(payment, package, trainer_id or payment.staff_id)

    elif payment.locker_type is not None:
        locker_number = await next_sequence_number(
            db, LockerAssignment.locker_number, settings.locker_number_prefix
        )
        record = build_locker_assignment(payment, locker_number)

    if record is not None:
        db.add(record)
        await db.flush()

    return record

"""
Payment statistics service for the dashboard.

Aggregates the whole ledger, independent of any listing filter.
Focused on READ-ONLY operations.

Scopes:
- totals, today, this month, top staff: COMPLETED payments only
- by type / by method: everything except CANCELLED
- by status: every payment
"""

from datetime import date, timedelta
from typing import Dict, Optional, Type
import enum
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from gym_ledger.app.core.config import settings
from gym_ledger.app.domain.payments.filters import payment_rows_statement
from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.staff import Staff
from gym_ledger.app.models.refund import Refund
from gym_ledger.app.models.ledger_enums import PaymentType, PaymentMethod, PaymentStatus
from gym_ledger.app.models.refund_enums import RefundStatus
from gym_ledger.app.schemas.payment import PaymentResponse
from gym_ledger.app.schemas.stats import PaymentStats, CountAmount, StaffRevenue

COUNT_AMOUNT = (func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0.0))


class PaymentStatsService:

    @staticmethod
    async def _count_amount(db: AsyncSession, *conditions) -> CountAmount:
        count, amount = (await db.execute(select(*COUNT_AMOUNT).where(*conditions))).one()
        return CountAmount(count=count or 0, amount=float(amount or 0.0))

    @staticmethod
    async def _breakdown(db: AsyncSession, column, values: Type[enum.Enum], *conditions) -> Dict[str, CountAmount]:
        """Group by an enum column; every enum value is present, zero if unused."""
        breakdown = {value.value: CountAmount() for value in values}

        stmt = select(column, *COUNT_AMOUNT).where(*conditions).group_by(column)
        for key, count, amount in (await db.execute(stmt)).all():
            breakdown[key.value] = CountAmount(count=count, amount=float(amount or 0.0))
        return breakdown

    @staticmethod
    async def get_stats(
        db: AsyncSession,
        today: Optional[date] = None,
        expiring_days: Optional[int] = None
    ) -> PaymentStats:
        """
        Compute dashboard statistics.

        Args:
            db: Database session
            today: Reference date (defaults to today)
            expiring_days: Forward window for expiring payments (defaults to settings.expiring_soon_days)
        """
        today = today or date.today()
        expiring_days = expiring_days if expiring_days is not None else settings.expiring_soon_days

        month_start = today.replace(day=1)
        next_month = (month_start + timedelta(days=32)).replace(day=1)

        completed = Payment.status == PaymentStatus.COMPLETED
        not_cancelled = Payment.status != PaymentStatus.CANCELLED

        # 1. Completed totals
        total = await PaymentStatsService._count_amount(db, completed)
        today_bucket = await PaymentStatsService._count_amount(db, completed, Payment.payment_date == today)
        month_bucket = await PaymentStatsService._count_amount(
            db, completed, Payment.payment_date >= month_start, Payment.payment_date < next_month
        )

        # 2. Breakdowns
        by_type = await PaymentStatsService._breakdown(db, Payment.payment_type, PaymentType, not_cancelled)
        by_method = await PaymentStatsService._breakdown(db, Payment.payment_method, PaymentMethod, not_cancelled)
        by_status = await PaymentStatsService._breakdown(db, Payment.status, PaymentStatus)

        # 3. Top staff by completed revenue
        revenue = func.sum(Payment.amount)
        top_staff_stmt = (
            select(Staff.id, Staff.name, func.count(Payment.id), revenue)
            .join(Payment, Payment.staff_id == Staff.id)
            .where(completed)
            .group_by(Staff.id, Staff.name)
            .order_by(revenue.desc(), Staff.id)
            .limit(settings.top_staff_limit)
        )
        top_staff = [
            StaffRevenue(staff_id=staff_id, staff_name=name, count=count, amount=float(amount or 0.0))
            for staff_id, name, count, amount in (await db.execute(top_staff_stmt)).all()
        ]

        # 4. Pending refunds
        pending_count, pending_amount = (await db.execute(
            select(func.count(Refund.id), func.coalesce(func.sum(Refund.refund_amount), 0.0))
            .where(Refund.status == RefundStatus.PENDING)
        )).one()

        # 5. Completed payments expiring within the window
        expiring_soon = (await db.execute(
            select(func.count(Payment.id)).where(
                completed,
                Payment.expiry_date >= today,
                Payment.expiry_date <= today + timedelta(days=expiring_days)
            )
        )).scalar() or 0

        # 6. Latest activity
        recent_rows = (await db.execute(
            payment_rows_statement()
            .where(not_cancelled)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .limit(settings.recent_payments_limit)
        )).all()

        return PaymentStats(
            total_payments=total.count,
            total_amount=total.amount,
            today_payments=today_bucket.count,
            today_amount=today_bucket.amount,
            month_payments=month_bucket.count,
            month_amount=month_bucket.amount,
            by_type=by_type,
            by_method=by_method,
            by_status=by_status,
            top_staff=top_staff,
            pending_refunds=pending_count or 0,
            pending_refund_amount=float(pending_amount or 0.0),
            expiring_soon=expiring_soon,
            expiring_window_days=expiring_days,
            recent_payments=[PaymentResponse.model_validate(dict(row._mapping)) for row in recent_rows]
        )

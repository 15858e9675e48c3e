"""
Payment read queries: listing, per-member listing and the detail view.

Read-only; no locks are taken.
"""

from datetime import date
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from gym_ledger.app.core.exceptions import NotFoundError
from gym_ledger.app.domain.payments.filters import (
    compile_list_query, compile_count_query, payment_rows_statement
)
from gym_ledger.app.domain.refunds.eligibility import refunded_total, evaluate_eligibility, to_money
from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.payment_item import PaymentItem
from gym_ledger.app.models.membership_history import MembershipHistory
from gym_ledger.app.models.pt_membership import PTMembership
from gym_ledger.app.models.locker_assignment import LockerAssignment
from gym_ledger.app.models.refund import Refund
from gym_ledger.app.schemas.payment import (
    PaymentFilter, PaymentResponse, PaymentListResponse, PaginationInfo, PaymentDetailResponse
)
from gym_ledger.app.services import directory
from gym_ledger.app.services.payment_history import get_payment_history


def _pagination(filters: PaymentFilter, total_items: int) -> PaginationInfo:
    per_page = filters.limit or total_items
    total_pages = (total_items + per_page - 1) // per_page if per_page else 0
    current_page = filters.page if filters.limit else 1

    return PaginationInfo(
        current_page=current_page,
        total_pages=total_pages,
        total_items=total_items,
        items_per_page=per_page,
        has_next_page=current_page < total_pages,
        has_previous_page=current_page > 1
    )


class PaymentQueries:

    @staticmethod
    async def list_payments(db: AsyncSession, filters: PaymentFilter) -> PaymentListResponse:
        """
        List payments matching a filter, with pagination info.

        Raises:
            ValidationError: Unknown sort field
        """
        rows = (await db.execute(compile_list_query(filters))).all()
        total_items = (await db.execute(compile_count_query(filters))).scalar() or 0

        return PaymentListResponse(
            payments=[PaymentResponse.model_validate(dict(row._mapping)) for row in rows],
            pagination=_pagination(filters, total_items)
        )

    @staticmethod
    async def list_by_member(db: AsyncSession, member_id: int) -> List[PaymentResponse]:
        """Non-cancelled payments of one member, newest first."""
        await directory.get_member(db, member_id)

        listing = await PaymentQueries.list_payments(db, PaymentFilter(member_id=member_id))
        return listing.payments

    @staticmethod
    async def get_detail(db: AsyncSession, payment_id: int, today: Optional[date] = None) -> PaymentDetailResponse:
        """
        Full payment view with line items, derived records, refunds and history.

        Raises:
            NotFoundError: Unknown payment
        """
        row = (await db.execute(
            payment_rows_statement().where(Payment.id == payment_id)
        )).first()
        if not row:
            raise NotFoundError("Payment", payment_id)

        async def children(model, order_column):
            result = await db.execute(
                select(model).where(model.payment_id == payment_id).order_by(order_column)
            )
            return list(result.scalars().all())

        refunded = await refunded_total(db, payment_id)
        eligibility = evaluate_eligibility(row, refunded)
        today = today or date.today()

        return PaymentDetailResponse(
            **dict(row._mapping),
            items=await children(PaymentItem, PaymentItem.id),
            membership_grants=await children(MembershipHistory, MembershipHistory.id),
            pt_packages=await children(PTMembership, PTMembership.id),
            locker_assignments=await children(LockerAssignment, LockerAssignment.id),
            refunds=await children(Refund, Refund.requested_at),
            history=await get_payment_history(db, payment_id),
            remaining_amount=to_money(row.amount - refunded),
            is_refundable=eligibility.eligible,
            days_until_expiry=(row.expiry_date - today).days if row.expiry_date else None
        )

"""
Payment ledger API Endpoints.

Thin transport layer over PaymentService / PaymentQueries / PaymentStatsService.
Writes require the payment management permission; reads require any active staff.
"""

from datetime import date
from typing import List, Literal, Optional, Union
from fastapi import APIRouter, Depends, Query, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gym_ledger.app.db.session import get_db
from gym_ledger.app.core.dependencies import get_current_staff
from gym_ledger.app.core.guards import require_payment_permission
from gym_ledger.app.domain.payments.payment_service import PaymentService
from gym_ledger.app.domain.payments.queries import PaymentQueries
from gym_ledger.app.domain.refunds.eligibility import check_refund_eligibility
from gym_ledger.app.models.ledger_enums import PaymentType, PaymentMethod, PaymentStatus
from gym_ledger.app.schemas.payment import (
    PaymentCreate, PaymentUpdate, PaymentCancel, PaymentFilter,
    PaymentCreatedResponse, ChangedResponse, PaymentResponse,
    PaymentListResponse, PaymentDetailResponse
)
from gym_ledger.app.schemas.refund import RefundEligibility
from gym_ledger.app.schemas.stats import PaymentStats
from gym_ledger.app.services.payment_stats import PaymentStatsService

router = APIRouter(prefix="/payments", tags=["Payments"])
member_router = APIRouter(prefix="/members", tags=["Payments"])


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


@router.post("", response_model=PaymentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payment_data: PaymentCreate,
    request: Request,
    current_staff: dict = Depends(require_payment_permission),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a payment and its derived membership / PT / locker record.
    """
    return await PaymentService.create(
        db, payment_data,
        actor_id=current_staff["staff_id"],
        ip_address=client_ip(request)
    )


@router.get("", response_model=PaymentListResponse)
async def list_payments(
    search: Optional[str] = Query(None, description="Payment number, member name or phone"),
    payment_type: Optional[Union[Literal["all"], PaymentType]] = Query(None),
    payment_method: Optional[Union[Literal["all"], PaymentMethod]] = Query(None),
    payment_status: Optional[Union[Literal["all"], PaymentStatus]] = Query(None, alias="status"),
    member_id: Optional[int] = Query(None),
    staff_id: Optional[int] = Query(None),
    payment_date_from: Optional[date] = Query(None),
    payment_date_to: Optional[date] = Query(None),
    amount_min: Optional[float] = Query(None),
    amount_max: Optional[float] = Query(None),
    has_refund: Optional[bool] = Query(None),
    expiry_date_from: Optional[date] = Query(None),
    expiry_date_to: Optional[date] = Query(None),
    sort_field: Optional[str] = Query(None, description="payment_date, amount, member_name, staff_name, payment_type, status, created_at"),
    sort_direction: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: Optional[int] = Query(None, ge=1, le=500, description="Items per page"),
    current_staff: dict = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    List payments. Without a status filter, cancelled payments are left out.
    """
    filters = PaymentFilter(
        search=search,
        payment_type=payment_type,
        payment_method=payment_method,
        status=payment_status,
        member_id=member_id,
        staff_id=staff_id,
        payment_date_from=payment_date_from,
        payment_date_to=payment_date_to,
        amount_min=amount_min,
        amount_max=amount_max,
        has_refund=has_refund,
        expiry_date_from=expiry_date_from,
        expiry_date_to=expiry_date_to,
        sort_field=sort_field,
        sort_direction=sort_direction,
        page=page,
        limit=limit
    )
    return await PaymentQueries.list_payments(db, filters)


@router.get("/stats", response_model=PaymentStats)
async def get_payment_stats(
    expiring_days: Optional[int] = Query(None, ge=0, le=365, description="Forward window for expiring payments"),
    current_staff: dict = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Dashboard statistics over the whole ledger.
    """
    return await PaymentStatsService.get_stats(db, expiring_days=expiring_days)


@router.get("/{payment_id}", response_model=PaymentDetailResponse)
async def get_payment(
    payment_id: int = Path(..., description="Payment ID"),
    current_staff: dict = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Payment detail with items, derived records, refunds and audit trail.
    """
    return await PaymentQueries.get_detail(db, payment_id)


@router.patch("/{payment_id}", response_model=ChangedResponse)
async def update_payment(
    payment_data: PaymentUpdate,
    request: Request,
    payment_id: int = Path(..., description="Payment ID"),
    current_staff: dict = Depends(require_payment_permission),
    db: AsyncSession = Depends(get_db)
):
    """
    Edit amount, method, date or notes of a completed payment.
    """
    return await PaymentService.update(
        db, payment_id, payment_data,
        actor_id=current_staff["staff_id"],
        ip_address=client_ip(request)
    )


@router.post("/{payment_id}/cancel", response_model=ChangedResponse)
async def cancel_payment(
    cancel_data: PaymentCancel,
    request: Request,
    payment_id: int = Path(..., description="Payment ID"),
    current_staff: dict = Depends(require_payment_permission),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a completed payment. Derived records are not reversed.
    """
    return await PaymentService.cancel(
        db, payment_id,
        actor_id=current_staff["staff_id"],
        reason=cancel_data.reason,
        ip_address=client_ip(request)
    )


@router.get("/{payment_id}/refund-eligibility", response_model=RefundEligibility)
async def get_refund_eligibility(
    payment_id: int = Path(..., description="Payment ID"),
    current_staff: dict = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Whether the payment can still be refunded, and by how much.
    """
    return await check_refund_eligibility(db, payment_id)


@member_router.get("/{member_id}/payments", response_model=List[PaymentResponse])
async def list_member_payments(
    member_id: int = Path(..., description="Member ID"),
    current_staff: dict = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db)
):
    """
    Non-cancelled payments of one member, newest first.
    """
    return await PaymentQueries.list_by_member(db, member_id)

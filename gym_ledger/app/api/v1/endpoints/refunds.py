"""
Refund API Endpoints.

Request a refund, then approve / reject / process it through one PATCH.
"""

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gym_ledger.app.db.session import get_db
from gym_ledger.app.core.guards import require_payment_permission
from gym_ledger.app.domain.refunds.refund_service import RefundService
from gym_ledger.app.schemas.payment import ChangedResponse
from gym_ledger.app.schemas.refund import RefundCreate, RefundDecision, RefundCreatedResponse

router = APIRouter(prefix="/refunds", tags=["Refunds"])


@router.post("", response_model=RefundCreatedResponse, status_code=status.HTTP_201_CREATED)
async def request_refund(
    refund_data: RefundCreate,
    request: Request,
    current_staff: dict = Depends(require_payment_permission),
    db: AsyncSession = Depends(get_db)
):
    """
    Open a pending refund against a completed payment.
    """
    return await RefundService.request_refund(
        db, refund_data,
        requester_id=current_staff["staff_id"],
        ip_address=request.client.host if request.client else None
    )


@router.patch("/{refund_id}", response_model=ChangedResponse)
async def update_refund(
    decision: RefundDecision,
    refund_id: int = Path(..., description="Refund ID"),
    current_staff: dict = Depends(require_payment_permission),
    db: AsyncSession = Depends(get_db)
):
    """
    Move a refund forward.

    - approved / rejected: decide a pending refund
    - processed: pay out an approved refund (marks the payment refunded)
    """
    return await RefundService.update(db, refund_id, decision, actor_id=current_staff["staff_id"])

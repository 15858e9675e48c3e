"""
Security guards for permission-based access control.
"""

from fastapi import Depends, HTTPException, status
from gym_ledger.app.core.dependencies import get_current_staff


def require_payment_permission(current_staff: dict = Depends(get_current_staff)) -> dict:
    """
    Dependency for endpoints that write to the payment ledger.

    Usage:
        @router.post("/payments")
        async def create_payment(
            data: PaymentCreate,
            staff: dict = Depends(require_payment_permission)
        ):
            ...

    Returns:
        Staff payload if permitted, raises 403 otherwise
    """
    if not current_staff.get("can_manage_payments"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Payment management permission required"
        )

    return current_staff

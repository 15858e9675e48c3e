"""
Payment statistics schemas for the dashboard.
"""

from pydantic import BaseModel, Field
from typing import Dict, List
from gym_ledger.app.schemas.payment import PaymentResponse


class CountAmount(BaseModel):
    """Generic count + amount bucket."""
    count: int = 0
    amount: float = 0.0


class StaffRevenue(BaseModel):
    """Completed revenue recorded by one staff member."""
    staff_id: int
    staff_name: str
    count: int
    amount: float


class PaymentStats(BaseModel):
    """Ledger-wide rollups, independent of any listing filter."""
    total_payments: int
    total_amount: float
    today_payments: int
    today_amount: float
    month_payments: int
    month_amount: float
    by_type: Dict[str, CountAmount]
    by_method: Dict[str, CountAmount]
    by_status: Dict[str, CountAmount]
    top_staff: List[StaffRevenue]
    pending_refunds: int
    pending_refund_amount: float
    expiring_soon: int
    expiring_window_days: int
    recent_payments: List[PaymentResponse] = Field(default_factory=list)

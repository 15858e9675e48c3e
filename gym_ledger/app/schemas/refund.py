"""
Refund Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from gym_ledger.app.models.refund_enums import RefundStatus, RefundMethod


class RefundCreate(BaseModel):
    """Schema for requesting a refund. Amount bounds are checked against eligibility."""
    payment_id: int
    refund_amount: float
    reason: str = Field(..., min_length=1, max_length=500)
    refund_method: RefundMethod
    account_info: Optional[str] = Field(None, max_length=255, description="Required for account transfers")
    notes: Optional[str] = Field(None, max_length=1000)


class RefundDecision(BaseModel):
    """Schema for moving a refund forward (approve, reject or process)."""
    status: RefundStatus
    notes: Optional[str] = Field(None, max_length=1000)


class RefundEligibility(BaseModel):
    """Whether a payment can still be refunded, and by how much."""
    eligible: bool
    reason: Optional[str] = None
    max_refund_amount: float
    suggested_method: RefundMethod


class RefundCreatedResponse(BaseModel):
    id: int


class RefundResponse(BaseModel):
    """Schema for displaying refunds."""
    id: int
    payment_id: int
    requested_by: int
    approved_by: Optional[int]
    refund_amount: float
    reason: str
    refund_method: RefundMethod
    account_info: Optional[str]
    status: RefundStatus
    requested_at: datetime
    approved_at: Optional[datetime]
    processed_at: Optional[datetime]
    notes: Optional[str]

    class Config:
        from_attributes = True

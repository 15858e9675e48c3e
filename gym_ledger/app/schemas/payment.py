"""
Payment Pydantic schemas.

Defines request and response models for the payment ledger.
"""

from pydantic import BaseModel, Field
from datetime import datetime, date
from typing import Optional, List, Any, Literal, Union
from gym_ledger.app.models.ledger_enums import (
    PaymentType, PaymentMethod, PaymentStatus, PaymentItemType, LockerType, HistoryAction
)
from gym_ledger.app.models.derived_enums import PTPackageStatus, LockerStatus
from gym_ledger.app.schemas.refund import RefundResponse


class PaymentItemCreate(BaseModel):
    """Schema for one line of a composite checkout."""
    item_type: PaymentItemType
    item_subtype: Optional[str] = Field(None, max_length=50)
    item_name: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(..., ge=0)
    total_amount: Optional[float] = Field(None, ge=0, description="Defaults to quantity * unit_price")
    specifications: Optional[str] = Field(None, description="JSON text with extra details")


class PaymentCreate(BaseModel):
    """Schema for recording a new payment."""
    member_id: int
    payment_type: PaymentType
    membership_type_id: Optional[int] = None
    pt_package_id: Optional[int] = None
    amount: Optional[float] = Field(None, ge=0, description="Defaults to the item total, then the plan price")
    payment_method: PaymentMethod
    payment_date: Optional[date] = Field(None, description="Defaults to today")
    staff_id: int = Field(..., description="Staff member recording the payment")
    trainer_id: Optional[int] = Field(None, description="PT trainer, defaults to the recording staff member")
    notes: Optional[str] = Field(None, max_length=1000)
    locker_type: Optional[LockerType] = None
    expiry_date: Optional[date] = None
    auto_renewal: bool = False
    items: List[PaymentItemCreate] = Field(default_factory=list)


class PaymentUpdate(BaseModel):
    """Schema for editing a payment. Status is not editable here."""
    amount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)

    class Config:
        extra = "forbid"


class PaymentCancel(BaseModel):
    """Schema for cancelling a payment."""
    reason: str = Field(..., min_length=1, max_length=500)


class PaymentCreatedResponse(BaseModel):
    id: int
    payment_number: str


class ChangedResponse(BaseModel):
    changed: bool


class PaymentFilter(BaseModel):
    """
    Structured search filter for payment listings.

    'all' for type, method or status means no constraint. Without a status,
    cancelled payments are left out.
    """
    search: Optional[str] = Field(None, description="Payment number, member name or phone")
    payment_type: Optional[Union[Literal["all"], PaymentType]] = None
    payment_method: Optional[Union[Literal["all"], PaymentMethod]] = None
    status: Optional[Union[Literal["all"], PaymentStatus]] = None
    member_id: Optional[int] = None
    staff_id: Optional[int] = None
    payment_date_from: Optional[date] = None
    payment_date_to: Optional[date] = None
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    has_refund: Optional[bool] = None
    expiry_date_from: Optional[date] = None
    expiry_date_to: Optional[date] = None

    # Sorting and pagination
    sort_field: Optional[str] = None
    sort_direction: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    limit: Optional[int] = Field(None, ge=1, le=500)


class PaymentResponse(BaseModel):
    """Payment row joined with display names."""
    id: int
    payment_number: str
    member_id: int
    payment_type: PaymentType
    membership_type_id: Optional[int]
    pt_package_id: Optional[int]
    amount: float
    payment_method: PaymentMethod
    payment_date: date
    staff_id: int
    notes: Optional[str]
    status: PaymentStatus
    locker_type: Optional[LockerType]
    expiry_date: Optional[date]
    auto_renewal: bool
    created_at: datetime

    member_name: str
    member_phone: Optional[str] = None
    staff_name: str
    membership_type_name: Optional[str] = None
    pt_package_name: Optional[str] = None

    class Config:
        from_attributes = True


class PaginationInfo(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool


class PaymentListResponse(BaseModel):
    """Schema for paginated payment list."""
    payments: List[PaymentResponse]
    pagination: PaginationInfo


class PaymentItemResponse(BaseModel):
    id: int
    payment_id: int
    item_type: PaymentItemType
    item_subtype: Optional[str]
    item_name: str
    quantity: int
    unit_price: float
    total_amount: float
    specifications: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class MembershipGrantResponse(BaseModel):
    id: int
    member_id: int
    membership_type_id: int
    payment_id: int
    start_date: date
    end_date: date
    is_active: bool

    class Config:
        from_attributes = True


class PTMembershipResponse(BaseModel):
    id: int
    member_id: int
    pt_package_id: int
    payment_id: int
    trainer_id: int
    total_sessions: int
    used_sessions: int
    remaining_sessions: int
    start_date: date
    expiry_date: date
    status: PTPackageStatus

    class Config:
        from_attributes = True


class LockerAssignmentResponse(BaseModel):
    id: int
    member_id: int
    payment_id: int
    locker_number: str
    locker_type: LockerType
    start_date: date
    end_date: date
    monthly_fee: float
    status: LockerStatus

    class Config:
        from_attributes = True


class PaymentHistoryResponse(BaseModel):
    id: int
    payment_id: int
    action: HistoryAction
    old_value: Optional[dict[str, Any]]
    new_value: Optional[dict[str, Any]]
    performed_by: int
    notes: Optional[str]
    ip_address: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentDetailResponse(PaymentResponse):
    """Full payment view: line items, derived records, refunds and audit trail."""
    member_number: str
    items: List[PaymentItemResponse] = Field(default_factory=list)
    membership_grants: List[MembershipGrantResponse] = Field(default_factory=list)
    pt_packages: List[PTMembershipResponse] = Field(default_factory=list)
    locker_assignments: List[LockerAssignmentResponse] = Field(default_factory=list)
    refunds: List[RefundResponse] = Field(default_factory=list)
    history: List[PaymentHistoryResponse] = Field(default_factory=list)
    remaining_amount: float
    is_refundable: bool
    days_until_expiry: Optional[int] = None

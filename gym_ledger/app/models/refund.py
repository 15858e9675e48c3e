"""
Refund database model.

A refund request against exactly one payment.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey, Text, CheckConstraint
from gym_ledger.app.db.session import Base
from gym_ledger.app.models.refund_enums import RefundStatus, RefundMethod


class Refund(Base):
    """
    Refund model.

    Follows a strict workflow: PENDING -> APPROVED -> PROCESSED, or PENDING -> REJECTED.
    The sum of APPROVED and PROCESSED refunds never exceeds the payment amount.
    """
    __tablename__ = "refunds"
    __table_args__ = (
        CheckConstraint("refund_amount > 0", name="ck_refunds_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payment_id = Column(Integer, ForeignKey('payments.id'), nullable=False, index=True)

    # Staff
    requested_by = Column(Integer, ForeignKey('staff.id'), nullable=False)
    approved_by = Column(Integer, ForeignKey('staff.id'), nullable=True)

    refund_amount = Column(Float, nullable=False)
    reason = Column(Text, nullable=False)
    refund_method = Column(Enum(RefundMethod), nullable=False)
    account_info = Column(String(255), nullable=True)  # Required for account transfers

    status = Column(Enum(RefundStatus), default=RefundStatus.PENDING, nullable=False, index=True)

    requested_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    notes = Column(Text, nullable=True)

    def __repr__(self):
        return f"<Refund(id={self.id}, payment_id={self.payment_id}, status='{self.status.value}', amount={self.refund_amount})>"

"""
Payment database model.

The ledger entry. Never hard-deleted; cancellation is a status.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Boolean, Date, DateTime, Enum, ForeignKey, Text, CheckConstraint
from sqlalchemy.sql import func
from gym_ledger.app.db.session import Base
from gym_ledger.app.models.ledger_enums import PaymentType, PaymentMethod, PaymentStatus, LockerType


class Payment(Base):
    """
    Payment model.

    Lifecycle: COMPLETED -> REFUNDED | CANCELLED. Terminal states never change.
    Only amount, method, date and notes are editable while COMPLETED.
    """
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payment_number = Column(String(30), unique=True, index=True, nullable=False)

    # Parties
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey('staff.id'), nullable=False, index=True)

    # What was bought
    payment_type = Column(Enum(PaymentType), nullable=False, index=True)
    membership_type_id = Column(Integer, ForeignKey('membership_types.id'), nullable=True)
    pt_package_id = Column(Integer, ForeignKey('pt_packages.id'), nullable=True)

    # Financials
    amount = Column(Float, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False, index=True)
    payment_date = Column(Date, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    status = Column(Enum(PaymentStatus), default=PaymentStatus.COMPLETED, nullable=False, index=True)

    # Locker / renewal
    locker_type = Column(Enum(LockerType), nullable=True)
    expiry_date = Column(Date, nullable=True, index=True)
    auto_renewal = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Payment(id={self.id}, number='{self.payment_number}', status='{self.status.value}', amount={self.amount})>"

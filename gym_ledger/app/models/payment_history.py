"""
Payment History database model.

Append-only audit trail of every state-changing operation on a payment.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, JSON, Text
from gym_ledger.app.db.session import Base
from gym_ledger.app.models.ledger_enums import HistoryAction


class PaymentHistory(Base):
    """
    Payment history model.

    Immutable record of a payment mutation.
    NO updates or deletions allowed.
    """
    __tablename__ = "payment_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payment_id = Column(Integer, ForeignKey('payments.id'), nullable=False, index=True)

    action = Column(Enum(HistoryAction), nullable=False, index=True)

    # Snapshots of the fields touched by the action
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    performed_by = Column(Integer, ForeignKey('staff.id'), nullable=False)
    notes = Column(Text, nullable=True)
    ip_address = Column(String(50), nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<PaymentHistory(id={self.id}, payment_id={self.payment_id}, action='{self.action.value}')>"

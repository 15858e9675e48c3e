"""
Membership grant database model.

Created only as a side effect of a membership payment.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from gym_ledger.app.db.session import Base


class MembershipHistory(Base):
    """Membership grant: the period a member may use the gym, bought by one payment."""
    __tablename__ = "membership_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False, index=True)
    membership_type_id = Column(Integer, ForeignKey('membership_types.id'), nullable=False)
    payment_id = Column(Integer, ForeignKey('payments.id'), nullable=False, unique=True, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)  # start + plan duration (months)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<MembershipHistory(id={self.id}, member_id={self.member_id}, end_date={self.end_date})>"

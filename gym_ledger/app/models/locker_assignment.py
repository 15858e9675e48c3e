"""
Locker assignment database model.

Created only as a side effect of an 'other' payment carrying a locker type.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from gym_ledger.app.db.session import Base
from gym_ledger.app.models.ledger_enums import LockerType
from gym_ledger.app.models.derived_enums import LockerStatus


class LockerAssignment(Base):
    __tablename__ = "locker_assignments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False, index=True)
    payment_id = Column(Integer, ForeignKey('payments.id'), nullable=False, unique=True, index=True)

    locker_number = Column(String(30), unique=True, nullable=False)
    locker_type = Column(Enum(LockerType), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    monthly_fee = Column(Float, nullable=False)
    status = Column(Enum(LockerStatus), default=LockerStatus.ACTIVE, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<LockerAssignment(id={self.id}, locker='{self.locker_number}', status='{self.status.value}')>"

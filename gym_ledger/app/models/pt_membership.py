"""
PT session package database model.

Created only as a side effect of a PT payment. Session consumption is
managed outside the ledger.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, Date, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from gym_ledger.app.db.session import Base
from gym_ledger.app.models.derived_enums import PTPackageStatus


class PTMembership(Base):
    __tablename__ = "pt_memberships"
    __table_args__ = (
        CheckConstraint("used_sessions + remaining_sessions = total_sessions", name="ck_pt_memberships_counters"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False, index=True)
    pt_package_id = Column(Integer, ForeignKey('pt_packages.id'), nullable=False)
    payment_id = Column(Integer, ForeignKey('payments.id'), nullable=False, unique=True, index=True)
    trainer_id = Column(Integer, ForeignKey('staff.id'), nullable=False, index=True)

    # Session counters
    total_sessions = Column(Integer, nullable=False)
    used_sessions = Column(Integer, default=0, nullable=False)
    remaining_sessions = Column(Integer, nullable=False)

    start_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False)  # start + validity days
    status = Column(Enum(PTPackageStatus), default=PTPackageStatus.ACTIVE, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PTMembership(id={self.id}, member_id={self.member_id}, remaining={self.remaining_sessions})>"

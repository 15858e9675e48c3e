"""
Member database model.

Members are maintained by the member directory; the ledger only reads them.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime
from sqlalchemy.sql import func
from gym_ledger.app.db.session import Base


class Member(Base):
    """Gym member. Referenced by payments, refunds and derived records."""
    __tablename__ = "members"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    member_number = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False, index=True)
    phone = Column(String(30), unique=True, nullable=True)
    email = Column(String(255), nullable=True)
    join_date = Column(Date, nullable=False, server_default=func.current_date())
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Member(id={self.id}, member_number='{self.member_number}', name='{self.name}')>"

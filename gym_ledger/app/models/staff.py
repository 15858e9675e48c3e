"""
Staff database model.

Staff are maintained by the staff directory. The ledger checks existence,
the active flag and the payment permission flag.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime
from sqlalchemy.sql import func
from gym_ledger.app.db.session import Base


class Staff(Base):
    """Staff member who records payments, trains PT members, and decides refunds."""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    staff_number = Column(String(50), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    position = Column(String(50), nullable=True)
    hire_date = Column(Date, nullable=False, server_default=func.current_date())
    is_active = Column(Boolean, default=True, nullable=False)

    # Permissions
    can_manage_payments = Column(Boolean, default=False, nullable=False)
    can_manage_members = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Staff(id={self.id}, name='{self.name}', can_manage_payments={self.can_manage_payments})>"

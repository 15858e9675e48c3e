"""
PT package catalog model.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text
from sqlalchemy.sql import func
from gym_ledger.app.db.session import Base


class PTPackage(Base):
    """Personal training package definition (session count + validity window)."""
    __tablename__ = "pt_packages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    session_count = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    validity_days = Column(Integer, default=90, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PTPackage(id={self.id}, name='{self.name}', sessions={self.session_count})>"

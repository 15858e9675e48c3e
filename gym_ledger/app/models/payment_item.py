"""
Payment item database model.

Line-item breakdown of a composite checkout. The payment amount stays authoritative.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey, Text, CheckConstraint
from sqlalchemy.sql import func
from gym_ledger.app.db.session import Base
from gym_ledger.app.models.ledger_enums import PaymentItemType


class PaymentItem(Base):
    __tablename__ = "payment_items"
    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="ck_payment_items_unit_price"),
        CheckConstraint("total_amount >= 0", name="ck_payment_items_total_amount"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payment_id = Column(Integer, ForeignKey('payments.id'), nullable=False, index=True)

    item_type = Column(Enum(PaymentItemType), nullable=False)
    item_subtype = Column(String(50), nullable=True)  # '3m', '10sessions', ...
    item_name = Column(String(100), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    specifications = Column(Text, nullable=True)  # JSON text

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PaymentItem(id={self.id}, payment_id={self.payment_id}, name='{self.item_name}')>"

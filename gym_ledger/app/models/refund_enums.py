"""
Refund enumerations.
"""

import enum


class RefundStatus(str, enum.Enum):
    """Refund status enumeration."""
    PENDING = "pending"  # Requested, waiting for a decision
    APPROVED = "approved"  # Approved, waiting to be paid out
    REJECTED = "rejected"  # Terminal
    PROCESSED = "processed"  # Paid out, terminal


class RefundMethod(str, enum.Enum):
    """How the money goes back to the member."""
    ACCOUNT_TRANSFER = "account_transfer"
    CARD_CANCEL = "card_cancel"
    CASH = "cash"

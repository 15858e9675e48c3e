"""
Payment ledger enumerations.
"""

import enum


class PaymentType(str, enum.Enum):
    """Payment type enumeration. Decides which derived record is synthesized."""
    MEMBERSHIP = "membership"
    PT = "pt"
    OTHER = "other"


class PaymentMethod(str, enum.Enum):
    """How the member paid."""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    ONLINE = "online"
    OTHER = "other"


class PaymentStatus(str, enum.Enum):
    """
    Payment status enumeration.

    COMPLETED is the only initial state. REFUNDED and CANCELLED are terminal.
    """
    COMPLETED = "completed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentStatus.REFUNDED, PaymentStatus.CANCELLED)


class PaymentItemType(str, enum.Enum):
    """Line item category for composite checkouts."""
    MEMBERSHIP = "membership"
    PT = "pt"
    LOCKER = "locker"


class LockerType(str, enum.Enum):
    INDIVIDUAL = "individual"
    COUPLE = "couple"


class HistoryAction(str, enum.Enum):
    """Payment history action tags."""
    CREATED = "created"
    UPDATED = "updated"
    REFUND_REQUESTED = "refund_requested"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"

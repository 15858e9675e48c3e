"""
Status enumerations for records derived from payments.
"""

import enum


class PTPackageStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"  # All sessions used
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class LockerStatus(str, enum.Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

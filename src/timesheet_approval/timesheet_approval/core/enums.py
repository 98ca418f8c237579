from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for permission checks."""

    ADMIN = "admin"
    OFFICE = "office"
    INSTALLER = "installer"
    AZUBI = "azubi"


class EntryType(str, Enum):
    """Kind of reported time or absence."""

    WORK = "work"
    BREAK = "break"
    COMPANY = "company"
    OFFICE = "office"
    WAREHOUSE = "warehouse"
    CAR = "car"
    VACATION = "vacation"
    SICK = "sick"
    HOLIDAY = "holiday"
    UNPAID = "unpaid"
    OVERTIME_REDUCTION = "overtime_reduction"
    SICK_CHILD = "sick_child"
    SICK_PAY = "sick_pay"
    SPECIAL_HOLIDAY = "special_holiday"
    EMERGENCY_SERVICE = "emergency_service"


class HistoryStatus(str, Enum):
    """Owner's verdict on a recorded change."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class ReviewAction(str, Enum):
    CONFIRM = "confirm"
    REJECT = "reject"


class DeletionMode(str, Enum):
    HARD = "hard"
    SOFT = "soft"

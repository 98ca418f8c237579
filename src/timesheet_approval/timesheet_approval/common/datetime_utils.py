from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Any, Optional

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date (YYYY-MM-DD): {value!r}")


def parse_clock_time(value: Optional[str]) -> Optional[time]:
    """Parse HH:MM; blank means no time."""
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"Invalid time (HH:MM): {value!r}")
    v = (value or "").strip()
    if not v:
        return None
    try:
        return datetime.strptime(v, "%H:%M").time()
    except ValueError:
        raise ValidationError(f"Invalid time (HH:MM): {value!r}")


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now()


def to_jsonable(value: Any) -> Any:
    """Render dates and times as ISO strings for JSON columns and responses."""
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, Enum):
        return value.value
    return value

from __future__ import annotations

import re
from typing import Optional

from ..core.exceptions import ValidationError

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text")
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def optional_text(value: Optional[str], field_name: str = "Value") -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text")
    value = value.strip()
    return value or None


def is_valid_entry_id(value: object) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value))


def require_entry_id(value: object) -> str:
    if not is_valid_entry_id(value):
        raise ValidationError(f"Malformed entry id: {value!r}")
    return str(value)


def require_non_negative(value: float, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number")
    if number < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return number

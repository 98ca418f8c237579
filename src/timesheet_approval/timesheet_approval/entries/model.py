from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from datetime import date, datetime, time
from typing import Any, Dict, Optional, Union

from ..core.enums import EntryType


class _Unset:
    """Marker for a patch member the caller did not supply."""

    _instance: Optional["_Unset"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class TimeEntry:
    """Domain entity: one unit of reported time or absence for one owner on one day."""

    entry_id: str
    user_id: str
    work_date: date
    entry_type: EntryType
    hours: float
    client_name: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    note: Optional[str] = None
    surcharge: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    submitted: bool = False
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    responsible_user_id: Optional[str] = None
    late_reason: Optional[str] = None

    last_changed_by: Optional[str] = None
    change_reason: Optional[str] = None
    change_confirmed_by_user: Optional[bool] = None

    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    deletion_reason: Optional[str] = None
    deletion_confirmed_by_user: Optional[bool] = None
    deletion_requested_at: Optional[datetime] = None
    deletion_requested_by: Optional[str] = None
    deletion_request_reason: Optional[str] = None

    # Read-model only, never persisted.
    has_history: bool = field(default=False, compare=False)

    @property
    def is_late(self) -> bool:
        return bool(self.late_reason)

    @property
    def is_rejected(self) -> bool:
        return self.rejected_at is not None

    @property
    def is_confirmed(self) -> bool:
        return self.confirmed_at is not None

    def snapshot(self) -> Dict[str, Any]:
        """Full persisted state, used as ``old_values`` in history."""
        data = asdict(self)
        data.pop("has_history", None)
        return data

    def merged(self, changes: Dict[str, Any]) -> "TimeEntry":
        return replace(self, **changes)


@dataclass(frozen=True)
class NewTimeEntry:
    """Fields a caller proposes for a new entry (identity and lifecycle are derived)."""

    work_date: date
    entry_type: EntryType
    hours: float
    client_name: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    note: Optional[str] = None
    surcharge: Optional[int] = None
    responsible_user_id: Optional[str] = None
    late_reason: Optional[str] = None

    def to_fields(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EntryPatch:
    """Partial update of an entry's content.

    Only content fields exist here, so ownership, lifecycle and tracking columns
    can never be touched through an update. A member left as ``UNSET`` is not
    part of the change; ``None`` explicitly clears an optional field.
    """

    work_date: Union[date, _Unset] = UNSET
    entry_type: Union[EntryType, _Unset] = UNSET
    hours: Union[float, _Unset] = UNSET
    client_name: Union[Optional[str], _Unset] = UNSET
    start_time: Union[Optional[time], _Unset] = UNSET
    end_time: Union[Optional[time], _Unset] = UNSET
    note: Union[Optional[str], _Unset] = UNSET
    surcharge: Union[Optional[int], _Unset] = UNSET
    responsible_user_id: Union[Optional[str], _Unset] = UNSET
    late_reason: Union[Optional[str], _Unset] = UNSET

    def changes(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    def supplies(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    def is_empty(self) -> bool:
        return not self.changes()

    @classmethod
    def field_names(cls) -> frozenset:
        return frozenset(f.name for f in fields(cls))

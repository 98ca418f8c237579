from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.enums import EntryType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import build_set_clause, db_cursor, fetchall, fetchone, in_clause, normalize_mysql_time, to_db_value
from .model import TimeEntry
from .repository import ReviewerRejectionChannel, TimeEntryRepository

_COLUMNS = (
    "entry_id",
    "user_id",
    "work_date",
    "entry_type",
    "hours",
    "client_name",
    "start_time",
    "end_time",
    "note",
    "surcharge",
    "created_at",
    "updated_at",
    "submitted",
    "confirmed_by",
    "confirmed_at",
    "rejected_by",
    "rejected_at",
    "rejection_reason",
    "responsible_user_id",
    "late_reason",
    "last_changed_by",
    "change_reason",
    "change_confirmed_by_user",
    "is_deleted",
    "deleted_at",
    "deleted_by",
    "deletion_reason",
    "deletion_confirmed_by_user",
    "deletion_requested_at",
    "deletion_requested_by",
    "deletion_request_reason",
)
_SELECT = "SELECT " + ", ".join(_COLUMNS) + " FROM time_entries"
_WRITABLE = frozenset(_COLUMNS) - {"entry_id", "user_id"}


def _optional_bool(value: Any) -> Optional[bool]:
    return None if value is None else bool(value)


def _row_to_entry(r: Dict[str, Any]) -> TimeEntry:
    return TimeEntry(
        entry_id=str(r["entry_id"]),
        user_id=str(r["user_id"]),
        work_date=r["work_date"],
        entry_type=EntryType(r["entry_type"]),
        hours=float(r["hours"]),
        client_name=r.get("client_name"),
        start_time=normalize_mysql_time(r.get("start_time")),
        end_time=normalize_mysql_time(r.get("end_time")),
        note=r.get("note"),
        surcharge=int(r["surcharge"]) if r.get("surcharge") is not None else None,
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
        submitted=bool(r.get("submitted")),
        confirmed_by=r.get("confirmed_by"),
        confirmed_at=r.get("confirmed_at"),
        rejected_by=r.get("rejected_by"),
        rejected_at=r.get("rejected_at"),
        rejection_reason=r.get("rejection_reason"),
        responsible_user_id=r.get("responsible_user_id"),
        late_reason=r.get("late_reason"),
        last_changed_by=r.get("last_changed_by"),
        change_reason=r.get("change_reason"),
        change_confirmed_by_user=_optional_bool(r.get("change_confirmed_by_user")),
        is_deleted=bool(r.get("is_deleted")),
        deleted_at=r.get("deleted_at"),
        deleted_by=r.get("deleted_by"),
        deletion_reason=r.get("deletion_reason"),
        deletion_confirmed_by_user=_optional_bool(r.get("deletion_confirmed_by_user")),
        deletion_requested_at=r.get("deletion_requested_at"),
        deletion_requested_by=r.get("deletion_requested_by"),
        deletion_request_reason=r.get("deletion_request_reason"),
    )


def _writable(fields: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - _WRITABLE
    if unknown:
        raise ValueError(f"Not a writable time_entries column: {sorted(unknown)}")
    return dict(fields)


class MySQLTimeEntryRepository(TimeEntryRepository, ReviewerRejectionChannel):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, entry_id: str) -> Optional[TimeEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE entry_id=%s", (entry_id,))
            r = fetchone(cur)
            return _row_to_entry(r) if r else None

    def get_many(self, entry_ids: Iterable[str]) -> Sequence[TimeEntry]:
        ids = list(dict.fromkeys(entry_ids))
        if not ids:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"{_SELECT} WHERE entry_id IN ({in_clause(ids)})", tuple(ids))
            return [_row_to_entry(r) for r in fetchall(cur)]

    def list_for_user(
        self,
        *,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_deleted: bool = False,
    ) -> Sequence[TimeEntry]:
        clauses = ["user_id=%s"]
        params: List[object] = [user_id]

        if start_date is not None:
            clauses.append("work_date>=%s")
            params.append(start_date)
        if end_date is not None:
            clauses.append("work_date<=%s")
            params.append(end_date)
        if not include_deleted:
            clauses.append("is_deleted=0")

        where = " AND ".join(clauses)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                {_SELECT}
                WHERE {where}
                ORDER BY work_date DESC, start_time ASC
                """,
                tuple(params),
            )
            return [_row_to_entry(r) for r in fetchall(cur)]

    def list_for_reviewer(self, *, reviewer_id: str) -> Sequence[TimeEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                {_SELECT}
                WHERE responsible_user_id=%s
                  AND confirmed_at IS NULL
                  AND rejected_at IS NULL
                  AND is_deleted=0
                ORDER BY work_date DESC
                """,
                (reviewer_id,),
            )
            return [_row_to_entry(r) for r in fetchall(cur)]

    def list_pending_changes(self, *, user_id: str) -> Sequence[TimeEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                {_SELECT}
                WHERE user_id=%s
                  AND change_confirmed_by_user=0
                  AND last_changed_by IS NOT NULL
                  AND last_changed_by<>%s
                ORDER BY work_date DESC
                """,
                (user_id, user_id),
            )
            return [_row_to_entry(r) for r in fetchall(cur)]

    def insert(self, *, user_id: str, fields: Mapping[str, Any]) -> str:
        values = _writable(fields)
        entry_id = str(uuid.uuid4())
        columns = ["entry_id", "user_id", *values.keys()]
        params = [entry_id, user_id, *(to_db_value(v) for v in values.values())]

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"INSERT INTO time_entries({', '.join(columns)}) VALUES({in_clause(columns)})",
                tuple(params),
            )
        return entry_id

    def update(self, entry_id: str, fields: Mapping[str, Any]) -> bool:
        values = _writable(fields)
        if not values:
            return False
        clause, params = build_set_clause(values)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE time_entries SET {clause} WHERE entry_id=%s", tuple(params + [entry_id]))
            # MySQL reports 0 affected rows when values did not change, so check existence.
            if cur.rowcount > 0:
                return True
            cur.execute("SELECT 1 AS found FROM time_entries WHERE entry_id=%s", (entry_id,))
            return fetchone(cur) is not None

    def update_many(self, entry_ids: Sequence[str], fields: Mapping[str, Any]) -> int:
        ids = list(dict.fromkeys(entry_ids))
        values = _writable(fields)
        if not ids or not values:
            return 0
        clause, params = build_set_clause(values)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"UPDATE time_entries SET {clause} WHERE entry_id IN ({in_clause(ids)})",
                tuple(params + ids),
            )
            return int(cur.rowcount)

    def delete(self, entry_id: str) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM time_entries WHERE entry_id=%s", (entry_id,))
            return cur.rowcount > 0

    # -------- Reviewer rejection channel --------
    def reject_and_clear_delegation(
        self,
        *,
        entry_id: str,
        rejected_by: str,
        reason: str,
        rejected_at: datetime,
    ) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE time_entries
                SET rejected_by=%s, rejected_at=%s, rejection_reason=%s,
                    confirmed_by=NULL, confirmed_at=NULL,
                    deletion_requested_at=NULL, deletion_requested_by=NULL, deletion_request_reason=NULL,
                    responsible_user_id=NULL
                WHERE entry_id=%s
                """,
                (rejected_by, rejected_at, reason, entry_id),
            )
            return cur.rowcount > 0

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Sequence, Set

from ..core.enums import HistoryStatus
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, in_clause, json_dumps, json_loads
from .model import EntryChangeHistory
from .repository import EntryHistoryRepository


class MySQLEntryHistoryRepository(EntryHistoryRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def append(
        self,
        *,
        entry_id: str,
        changed_by: Optional[str],
        old_values: Mapping[str, Any],
        new_values: Mapping[str, Any],
        reason: Optional[str],
        status: HistoryStatus,
        changed_at: datetime,
    ) -> str:
        history_id = str(uuid.uuid4())
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO entry_change_history(
                    history_id, entry_id, changed_by, old_values, new_values, reason, status, changed_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    history_id,
                    entry_id,
                    changed_by,
                    json_dumps(dict(old_values)),
                    json_dumps(dict(new_values)),
                    reason,
                    status.value,
                    changed_at,
                ),
            )
        return history_id

    def list_for_entry(self, entry_id: str, *, limit: int) -> Sequence[EntryChangeHistory]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT history_id, entry_id, changed_by, old_values, new_values, reason,
                       status, changed_at, user_response_at, user_response_note
                FROM entry_change_history
                WHERE entry_id=%s
                ORDER BY changed_at DESC
                LIMIT %s
                """,
                (entry_id, int(limit)),
            )
            return [
                EntryChangeHistory(
                    history_id=str(r["history_id"]),
                    entry_id=str(r["entry_id"]),
                    changed_by=r.get("changed_by"),
                    old_values=json_loads(r.get("old_values")),
                    new_values=json_loads(r.get("new_values")),
                    reason=r.get("reason"),
                    status=HistoryStatus(r["status"]),
                    changed_at=r["changed_at"],
                    user_response_at=r.get("user_response_at"),
                    user_response_note=r.get("user_response_note"),
                )
                for r in fetchall(cur)
            ]

    def entry_ids_with_history(self, entry_ids: Iterable[str]) -> Set[str]:
        ids = list(dict.fromkeys(entry_ids))
        if not ids:
            return set()
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT DISTINCT entry_id FROM entry_change_history WHERE entry_id IN ({in_clause(ids)})",
                tuple(ids),
            )
            return {str(r["entry_id"]) for r in fetchall(cur)}

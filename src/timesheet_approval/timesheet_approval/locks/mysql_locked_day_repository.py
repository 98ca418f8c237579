from __future__ import annotations

from datetime import date
from typing import AbstractSet, Dict, Iterable, Mapping, Set

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, in_clause
from .repository import LockedDayRepository


class MySQLLockedDayRepository(LockedDayRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def locked_dates(self, user_id: str) -> AbstractSet[date]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT locked_date FROM locked_days WHERE user_id=%s", (user_id,))
            return frozenset(r["locked_date"] for r in fetchall(cur))

    def locked_dates_for_users(self, user_ids: Iterable[str]) -> Mapping[str, AbstractSet[date]]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        out: Dict[str, Set[date]] = {uid: set() for uid in ids}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT user_id, locked_date FROM locked_days WHERE user_id IN ({in_clause(ids)})",
                tuple(ids),
            )
            for r in fetchall(cur):
                out[r["user_id"]].add(r["locked_date"])
        return {uid: frozenset(days) for uid, days in out.items()}

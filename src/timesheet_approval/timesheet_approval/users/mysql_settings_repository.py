from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import UserSettings
from .repository import UserSettingsRepository


class MySQLUserSettingsRepository(UserSettingsRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_settings(self, user_id: str) -> Optional[UserSettings]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT user_id, display_name, role, require_confirmation, is_active
                FROM user_settings
                WHERE user_id=%s
                """,
                (user_id,),
            )
            r = fetchone(cur)
            if not r:
                return None
            return UserSettings(
                user_id=str(r["user_id"]),
                display_name=r["display_name"],
                role=Role(r["role"]),
                require_confirmation=bool(r["require_confirmation"]),
                is_active=bool(r.get("is_active", 1)),
            )

    def get_display_names(self, user_ids: Iterable[str]) -> Mapping[str, str]:
        ids = sorted(set(user_ids))
        if not ids:
            return {}
        out: Dict[str, str] = {}
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT user_id, display_name FROM user_settings WHERE user_id IN ({in_clause(ids)})",
                tuple(ids),
            )
            for r in fetchall(cur):
                out[str(r["user_id"])] = r["display_name"]
        return out

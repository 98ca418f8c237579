from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Sequence, Set

from ..core.constants import DEFAULT_HISTORY_LIMIT, SYSTEM_CHANGER_NAME, UNKNOWN_CHANGER_NAME
from ..core.enums import HistoryStatus
from ..entries.model import TimeEntry
from ..users.repository import UserSettingsRepository
from .model import EntryChangeHistory
from .repository import EntryHistoryRepository

logger = logging.getLogger(__name__)


class HistoryRecorder:
    """Writes the audit trail of entry corrections and reads it back for display."""

    def __init__(self, history: EntryHistoryRepository, users: UserSettingsRepository, *, limit: int = DEFAULT_HISTORY_LIMIT):
        self._history = history
        self._users = users
        self._limit = int(limit)

    def record(
        self,
        *,
        before: TimeEntry,
        requested: Mapping[str, Any],
        changed_by: str,
        reason: Optional[str],
        status: HistoryStatus,
        changed_at: datetime,
    ) -> str:
        """Append one row: full prior snapshot plus the delta the caller asked for."""

        history_id = self._history.append(
            entry_id=before.entry_id,
            changed_by=changed_by,
            old_values=before.snapshot(),
            new_values=dict(requested),
            reason=reason,
            status=status,
            changed_at=changed_at,
        )
        logger.info(
            "History recorded: entry_id=%s history_id=%s changed_by=%s status=%s",
            before.entry_id,
            history_id,
            changed_by,
            status.value,
        )
        return history_id

    def list_for_entry(self, entry_id: str, *, limit: int | None = None) -> Sequence[EntryChangeHistory]:
        rows = self._history.list_for_entry(entry_id, limit=int(limit or self._limit))
        changer_ids = {r.changed_by for r in rows if r.changed_by}
        names = self._users.get_display_names(changer_ids) if changer_ids else {}
        return [replace(r, changer_name=self._changer_name(r.changed_by, names)) for r in rows]

    def entries_with_history(self, entry_ids: Iterable[str]) -> Set[str]:
        ids = list(entry_ids)
        if not ids:
            return set()
        return set(self._history.entry_ids_with_history(ids))

    @staticmethod
    def _changer_name(changed_by: Optional[str], names: Mapping[str, str]) -> str:
        if not changed_by:
            return SYSTEM_CHANGER_NAME
        return names.get(changed_by) or UNKNOWN_CHANGER_NAME

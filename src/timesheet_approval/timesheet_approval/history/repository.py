from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence, Set

from ..core.enums import HistoryStatus
from .model import EntryChangeHistory


class EntryHistoryRepository(Protocol):
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
        raise NotImplementedError

    def list_for_entry(self, entry_id: str, *, limit: int) -> Sequence[EntryChangeHistory]:
        """Newest first."""

        raise NotImplementedError

    def entry_ids_with_history(self, entry_ids: Iterable[str]) -> Set[str]:
        raise NotImplementedError

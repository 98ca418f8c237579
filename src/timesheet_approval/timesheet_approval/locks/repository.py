from __future__ import annotations

from datetime import date
from typing import AbstractSet, Iterable, Mapping, Protocol


class LockedDayRepository(Protocol):
    """Read-only view of the owners' locked days."""

    def locked_dates(self, user_id: str) -> AbstractSet[date]:
        raise NotImplementedError

    def locked_dates_for_users(self, user_ids: Iterable[str]) -> Mapping[str, AbstractSet[date]]:
        raise NotImplementedError

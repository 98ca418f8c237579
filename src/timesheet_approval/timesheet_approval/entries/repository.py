from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Protocol, Sequence

from .model import TimeEntry


class TimeEntryRepository(Protocol):
    """Entry Store contract: durable table of time entries.

    Partial updates write exactly the supplied field set; there is no version
    column, so the later of two concurrent updates wins.
    """

    def get(self, entry_id: str) -> Optional[TimeEntry]:
        raise NotImplementedError

    def get_many(self, entry_ids: Iterable[str]) -> Sequence[TimeEntry]:
        raise NotImplementedError

    def list_for_user(
        self,
        *,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_deleted: bool = False,
    ) -> Sequence[TimeEntry]:
        """Owner's entries, newest date first, then by start time."""

        raise NotImplementedError

    def list_for_reviewer(self, *, reviewer_id: str) -> Sequence[TimeEntry]:
        """Open peer reviews: delegated to the reviewer, neither confirmed nor rejected."""

        raise NotImplementedError

    def list_pending_changes(self, *, user_id: str) -> Sequence[TimeEntry]:
        """Owner's entries edited by someone else and not yet acknowledged."""

        raise NotImplementedError

    def insert(self, *, user_id: str, fields: Mapping[str, Any]) -> str:
        raise NotImplementedError

    def update(self, entry_id: str, fields: Mapping[str, Any]) -> bool:
        raise NotImplementedError

    def update_many(self, entry_ids: Sequence[str], fields: Mapping[str, Any]) -> int:
        raise NotImplementedError

    def delete(self, entry_id: str) -> bool:
        raise NotImplementedError


class ReviewerRejectionChannel(Protocol):
    """Privileged reject that also clears the peer-review delegation.

    Normal field updates may not null out ``responsible_user_id``; this channel may.
    """

    def reject_and_clear_delegation(
        self,
        *,
        entry_id: str,
        rejected_by: str,
        reason: str,
        rejected_at: datetime,
    ) -> bool:
        raise NotImplementedError

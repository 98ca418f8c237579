from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...common.validators import require_non_empty
from ...core.enums import DeletionMode
from ..model import TimeEntry
from .base import DeletionDecision, DeletionStrategy


class SoftDeleteStrategy(DeletionStrategy):
    """Keep the row for audit and mark it inactive.

    When someone other than the owner deletes, the owner still has to acknowledge it.
    """

    def decide(self, *, entry: TimeEntry, actor_id: str, reason: Optional[str], now: datetime) -> DeletionDecision:
        reason = require_non_empty(reason, "Deletion reason")
        return DeletionDecision(
            mode=DeletionMode.SOFT,
            fields={
                "is_deleted": True,
                "deleted_at": now,
                "deleted_by": actor_id,
                "deletion_reason": reason,
                "deletion_confirmed_by_user": actor_id == entry.user_id,
            },
        )

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ...core.enums import DeletionMode
from ..model import TimeEntry
from .base import DeletionDecision, DeletionStrategy


class HardDeleteStrategy(DeletionStrategy):
    """Owner removes an unsubmitted draft for good."""

    def decide(self, *, entry: TimeEntry, actor_id: str, reason: Optional[str], now: datetime) -> DeletionDecision:
        return DeletionDecision(mode=DeletionMode.HARD)

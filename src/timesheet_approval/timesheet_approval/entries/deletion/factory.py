from __future__ import annotations

from dataclasses import dataclass

from ..model import TimeEntry
from .base import DeletionStrategy
from .hard_strategy import HardDeleteStrategy
from .soft_strategy import SoftDeleteStrategy


@dataclass
class DeletionStrategyFactory:
    """Factory Pattern: only the owner may drop a pure draft; everything else is soft."""

    def for_entry(self, *, entry: TimeEntry, actor_id: str) -> DeletionStrategy:
        if actor_id == entry.user_id and not entry.submitted:
            return HardDeleteStrategy()
        return SoftDeleteStrategy()

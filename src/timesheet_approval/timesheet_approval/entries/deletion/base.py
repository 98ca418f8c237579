from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ...core.enums import DeletionMode
from ..model import TimeEntry


@dataclass(frozen=True)
class DeletionDecision:
    mode: DeletionMode
    fields: Dict[str, Any] = field(default_factory=dict)


class DeletionStrategy(ABC):
    """Strategy Pattern: encapsulate how an entry leaves the active set."""

    @abstractmethod
    def decide(self, *, entry: TimeEntry, actor_id: str, reason: Optional[str], now: datetime) -> DeletionDecision:
        raise NotImplementedError

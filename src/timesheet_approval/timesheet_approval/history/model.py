from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from ..core.enums import HistoryStatus


@dataclass(frozen=True)
class EntryChangeHistory:
    """Append-only audit row: one per update of an existing entry."""

    history_id: str
    entry_id: str
    changed_by: Optional[str]
    old_values: Dict[str, Any]
    new_values: Dict[str, Any]
    reason: Optional[str]
    status: HistoryStatus
    changed_at: datetime
    user_response_at: Optional[datetime] = None
    user_response_note: Optional[str] = None
    # Joined for display only.
    changer_name: Optional[str] = field(default=None, compare=False)

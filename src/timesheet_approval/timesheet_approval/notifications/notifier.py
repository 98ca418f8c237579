from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from blinker import Signal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """Something in ``table`` changed for ``entity_id``. Carries no row data."""

    table: str
    entity_id: str


Unsubscribe = Callable[[], None]


class ChangeNotifier:
    """Typed publish/subscribe for row invalidation.

    Subscribers pick a table and optionally a single entity; they are expected
    to re-read the row when called.
    """

    def __init__(self):
        self._signal = Signal("Row changed")

    def publish(self, table: str, entity_id: str) -> ChangeEvent:
        event = ChangeEvent(table=table, entity_id=str(entity_id))
        self._signal.send(table, event=event)
        return event

    def subscribe(
        self,
        callback: Callable[[ChangeEvent], None],
        *,
        table: str,
        entity_id: Optional[str] = None,
    ) -> Unsubscribe:
        def receiver(sender, *, event: ChangeEvent) -> None:
            if entity_id is not None and event.entity_id != entity_id:
                return
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber failed: table=%s entity_id=%s", event.table, event.entity_id)

        self._signal.connect(receiver, sender=table, weak=False)

        def unsubscribe() -> None:
            self._signal.disconnect(receiver, sender=table)

        return unsubscribe

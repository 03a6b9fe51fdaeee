# fleetadmin/client/events.py

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from fleetadmin.schemas.reminders import Reminder

logger = logging.getLogger(__name__)


class ReminderEventKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    TOGGLED_ACTIVE = "toggled_active"
    TOGGLED_COMPLETED = "toggled_completed"


@dataclass
class ReminderEvent:
    """
    Aviso de cambio para otras vistas montadas.
    `reminder` viaja en created/updated/toggles; en deleted solo `reminder_id`.
    """
    kind: ReminderEventKind
    reminder: Optional[Reminder] = None
    reminder_id: Optional[str] = None
    state: Optional[bool] = None
    source: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Handler = Callable[[ReminderEvent], Any]


class ReminderEventBus:
    """Pub/sub en proceso, uno por aplicación cliente."""

    def __init__(self):
        self._handlers: Dict[int, Handler] = {}
        self._next_id = 0

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        token = self._next_id
        self._next_id += 1
        self._handlers[token] = handler

        def unsubscribe() -> None:
            self._handlers.pop(token, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def publish(self, event: ReminderEvent) -> None:
        # copia: un handler puede desuscribirse durante la entrega
        for handler in list(self._handlers.values()):
            try:
                handler(event)
            except Exception:
                logger.exception("events: handler failed for %s", event.kind.value)

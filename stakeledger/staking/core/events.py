"""
Ledger events.

Committed operations publish what happened (stakes, withdrawals, payouts,
parameter changes) for auditors and indexers. The ledger never reads its
own events back.
"""
from collections import deque
from typing import Any, Deque, Dict, List, Callable, Optional, Union
import logging

from pydantic import BaseModel, Field

from ...protocol.types.common import EventType

logger = logging.getLogger(__name__)

EventName = Union[EventType, str]

# Published events kept in memory for GET /events
DEFAULT_HISTORY_SIZE = 1000


class LedgerEvent(BaseModel):
    sequence: int
    event_type: str
    data: Dict[str, Any] = Field(default_factory=dict)


class EventBus:
    """
    Synchronous publisher for ledger events.

    Listeners run in the publishing thread, in subscription order. A listener
    that raises is logged and skipped; the rest still receive the event.
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        self.listeners: Dict[str, List[Callable]] = {}
        self.history: Deque[LedgerEvent] = deque(maxlen=history_size)
        self._sequence = 0

    def subscribe(self, event_type: EventName, callback: Callable) -> None:
        """
        Args:
            event_type: EventType or its value (e.g. 'staked', 'fee_collected')
            callback: Called with the event data as keyword arguments
        """
        name = _event_name(event_type)
        self.listeners.setdefault(name, []).append(callback)
        logger.debug(f"Subscribed to {name}")

    def unsubscribe(self, event_type: EventName, callback: Callable) -> None:
        name = _event_name(event_type)
        try:
            self.listeners.get(name, []).remove(callback)
        except ValueError:
            logger.warning(f"Callback not subscribed to {name}")

    def emit(self, event_type: EventName, **data: Any) -> LedgerEvent:
        name = _event_name(event_type)
        self._sequence += 1
        event = LedgerEvent(sequence=self._sequence, event_type=name, data=data)
        self.history.append(event)

        try:
            from ..observability.metrics import events_total
            events_total.labels(event_type=name).inc()
        except Exception as e:
            logger.debug(f"Failed to update event metric: {e}")

        callbacks = list(self.listeners.get(name, []))
        logger.debug(f"Event #{event.sequence} {name} -> {len(callbacks)} listener(s)")
        for callback in callbacks:
            try:
                callback(**data)
            except Exception as e:
                logger.error(f"Listener for {name} failed: {e}", exc_info=True)
        return event

    def recent(self, limit: int = 100, event_type: Optional[EventName] = None) -> List[LedgerEvent]:
        """Newest-last slice of the history, optionally filtered by type."""
        events = list(self.history)
        if event_type is not None:
            name = _event_name(event_type)
            events = [e for e in events if e.event_type == name]
        return events[-limit:] if limit > 0 else []

    def clear(self, event_type: Optional[EventName] = None) -> None:
        """Drop the listeners of one type, or every listener and the history."""
        if event_type is not None:
            self.listeners.pop(_event_name(event_type), None)
            return
        self.listeners.clear()
        self.history.clear()


def _event_name(event_type: EventName) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


event_bus = EventBus()

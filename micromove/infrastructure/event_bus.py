import inspect
from typing import Dict, List, Any, Callable
from enum import Enum

from micromove.infrastructure.logging import get_logger

logger = get_logger(__name__)

class EventType(Enum):
    """Session events; sounds, vibration and celebrations hang off these."""
    SESSION_STARTED = "session_started"
    SESSION_RESTORED = "session_restored"
    STEP_COMPLETED = "step_completed"
    STEP_SKIPPED = "step_skipped"
    STEP_REFRAMED = "step_reframed"
    TIMER_EXPIRED = "timer_expired"
    SESSION_COMPLETED = "session_completed"
    SESSION_RESET = "session_reset"

class EventBus:
    """
    Async event bus that keeps side effects out of the session transitions.
    """
    def __init__(self):
        self._subscribers: Dict[EventType, List[Callable]] = {}

    def subscribe(self, event_type: EventType, handler: Callable):
        """Subscribe a handler to an event type."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable):
        """Remove a handler from an event type."""
        if event_type in self._subscribers:
            try:
                self._subscribers[event_type].remove(handler)
            except ValueError:
                pass

    async def publish(self, event_type: EventType, data: Dict[str, Any]):
        """Publish an event to all subscribers."""
        logger.debug(f"Event {event_type.value}", extra={"props": {"event": event_type.value, "data": data}})

        # Iterate over a copy so handlers may unsubscribe during dispatch
        for handler in list(self._subscribers.get(event_type, [])):
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(data)
                else:
                    handler(data)
            except Exception:
                logger.error(f"Event handler failed for {event_type.value}", exc_info=True)


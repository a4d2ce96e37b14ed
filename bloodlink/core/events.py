"""In-process event bus for notification state changes.

Dispatch is synchronous: publish() runs every handler subscribed to the event
name, in subscription order, before it returns. A handler that raises is logged
and skipped; the remaining handlers still run.
"""

import logging
from enum import Enum
from functools import lru_cache
from itertools import count
from typing import Any, Callable

from bloodlink.core.metrics import EVENTS_PUBLISHED, EVENT_HANDLER_ERRORS

logger = logging.getLogger(__name__)

Handler = Callable[[dict], Any]


class EventName(str, Enum):
    NOTIFICATION_READ = "notification_read"            # {"notificationId": str}
    ALL_NOTIFICATIONS_READ = "all_notifications_read"  # {}
    COUNT_UPDATED = "notification_count_updated"       # {"count": int}
    NEW_NOTIFICATION = "new_notification"              # {"notification": Notification}


class SubscriptionHandle:
    """Token returned by EventBus.subscribe(). unsubscribe() is idempotent."""

    def __init__(self, bus: "EventBus", event_name: str, handler: Handler, seq: int):
        self._bus = bus
        self.event_name = event_name
        self.handler = handler
        self._seq = seq
        self.active = True

    def unsubscribe(self) -> None:
        self._bus.unsubscribe(self)

    def __repr__(self) -> str:
        state = "active" if self.active else "removed"
        return f"<SubscriptionHandle {self.event_name}#{self._seq} {state}>"


class EventBus:
    """Many-producer / many-consumer synchronous pub/sub."""

    def __init__(self):
        self._subscriptions: dict[str, list[SubscriptionHandle]] = {}
        self._seq = count(1)

    def subscribe(self, event_name: str, handler: Handler) -> SubscriptionHandle:
        name = _event_key(event_name)
        handle = SubscriptionHandle(self, name, handler, next(self._seq))
        self._subscriptions.setdefault(name, []).append(handle)
        logger.debug("Subscribed %r", handle)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        if not handle.active:
            return
        handle.active = False
        handles = self._subscriptions.get(handle.event_name, [])
        self._subscriptions[handle.event_name] = [h for h in handles if h is not handle]
        if not self._subscriptions[handle.event_name]:
            del self._subscriptions[handle.event_name]
        logger.debug("Unsubscribed %r", handle)

    def publish(self, event_name: str, payload: dict | None = None) -> None:
        name = _event_key(event_name)
        payload = payload if payload is not None else {}
        EVENTS_PUBLISHED.labels(event=name).inc()

        # Snapshot so handlers (un)subscribing mid-dispatch don't shift the iteration
        for handle in list(self._subscriptions.get(name, [])):
            if not handle.active:
                continue
            try:
                handle.handler(payload)
            except Exception:
                EVENT_HANDLER_ERRORS.labels(event=name).inc()
                logger.exception("Handler %r failed for event %s", handle.handler, name)

    def subscriber_count(self, event_name: str) -> int:
        return len(self._subscriptions.get(_event_key(event_name), []))

    def clear(self) -> None:
        for handles in self._subscriptions.values():
            for handle in handles:
                handle.active = False
        self._subscriptions.clear()


def _event_key(event_name: str) -> str:
    if isinstance(event_name, EventName):
        return event_name.value
    return str(event_name)


@lru_cache
def get_event_bus() -> EventBus:
    """Process-wide bus. Components take a bus argument; this is the default."""
    return EventBus()

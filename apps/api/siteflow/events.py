from __future__ import annotations

from collections import deque

from siteflow.context import get_actor_id, get_correlation_id
from siteflow.core.events import event_bus
from siteflow.notifications.schemas import SystemEvent

RECENT_EVENTS_LIMIT = 500

# Most recent events only; older entries fall off so a long-running process stays bounded.
published_events: deque[SystemEvent] = deque(maxlen=RECENT_EVENTS_LIMIT)


def publish(event: SystemEvent) -> None:
    if event.correlation_id is None:
        event.correlation_id = get_correlation_id()
    if not event.user_id:
        event.user_id = get_actor_id() or ""

    published_events.append(event)
    if event.event_type:
        event_bus.publish(event.event_type, event)

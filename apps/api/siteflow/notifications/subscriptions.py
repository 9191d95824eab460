from __future__ import annotations

import logging
from collections.abc import Callable

from siteflow.core.events import InProcessEventBus, InternalEvent
from siteflow.notifications.schemas import SystemEvent
from siteflow.notifications.service import WorkflowMessageService
from siteflow.notifications.templates import WORKFLOW_TYPES


logger = logging.getLogger("siteflow.notifications.subscriptions")


def make_workflow_event_handler(
    service_factory: Callable[[], WorkflowMessageService],
) -> Callable[[InternalEvent], None]:
    """Bus handler that feeds published system events to the workflow message service.

    Failures are logged and swallowed so the transition that published the
    event still succeeds.
    """

    def _on_workflow_event(event: InternalEvent) -> None:
        if not isinstance(event.payload, SystemEvent):
            return
        system_event = event.payload
        try:
            service_factory().process_system_event(system_event)
        except Exception as exc:
            logger.exception(
                "workflow_message.processing_failed",
                extra={
                    "event_type": system_event.event_type,
                    "dedup_key": system_event.dedup_key,
                    "error": str(exc)[:500],
                },
            )

    return _on_workflow_event


def register_workflow_subscribers(bus: InProcessEventBus, handler: Callable[[InternalEvent], None]) -> None:
    for event_type in WORKFLOW_TYPES:
        bus.subscribe(event_type, handler)

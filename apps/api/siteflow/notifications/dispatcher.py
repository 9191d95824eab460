from __future__ import annotations

import logging
from typing import Protocol


logger = logging.getLogger("siteflow.notifications.dispatch")


class NotificationDispatcher(Protocol):
    def send_to_device(self, device_token: str, title: str, body: str, data: dict[str, str] | None = None) -> str: ...

    def send_to_topic(self, topic: str, title: str, body: str, data: dict[str, str] | None = None) -> str: ...


class LoggingNotificationDispatcher:
    """Dispatcher used when no push provider is wired; it records what would be sent."""

    def __init__(self) -> None:
        self.sent: list[dict[str, object]] = []

    def send_to_device(self, device_token: str, title: str, body: str, data: dict[str, str] | None = None) -> str:
        return self._record("device", device_token, title, body, data)

    def send_to_topic(self, topic: str, title: str, body: str, data: dict[str, str] | None = None) -> str:
        return self._record("topic", topic, title, body, data)

    def _record(self, channel: str, target: str, title: str, body: str, data: dict[str, str] | None) -> str:
        delivery_id = f"{channel}-{len(self.sent) + 1}"
        self.sent.append({"channel": channel, "target": target, "title": title, "body": body, "data": dict(data or {})})
        logger.info("notification.dispatched", extra={"status": channel, "reason": title})
        return delivery_id

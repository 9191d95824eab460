from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from datetime import datetime, timedelta, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SlidingWindowRateLimiter:
    """Per-sender log of send timestamps checked against an hourly and a daily cap.

    History is process-local and is not shared between API instances.
    """

    retention = timedelta(hours=24)

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._history: dict[str, deque[datetime]] = {}

    def hit(self, sender_id: str, per_hour: int, per_day: int) -> bool:
        """Record a send attempt and report whether the sender is over a cap.

        The attempt is logged even when it is rejected.
        """
        return self._check(sender_id, per_hour, per_day, record=True)

    def peek(self, sender_id: str, per_hour: int, per_day: int) -> bool:
        """Same answer as ``hit`` without logging an attempt."""
        return self._check(sender_id, per_hour, per_day, record=False)

    def _check(self, sender_id: str, per_hour: int, per_day: int, *, record: bool) -> bool:
        now = self._clock()
        with self._lock:
            history = self._history.setdefault(sender_id, deque())
            while history and history[0] < now - self.retention:
                history.popleft()

            hour_ago = now - timedelta(hours=1)
            hourly = sum(1 for sent_at in history if sent_at > hour_ago)
            daily = len(history)
            if record:
                history.append(now)

        return hourly >= per_hour or daily >= per_day

    def count(self, sender_id: str) -> int:
        with self._lock:
            return len(self._history.get(sender_id, ()))

    def clear(self) -> None:
        with self._lock:
            self._history.clear()


_limiter = SlidingWindowRateLimiter()


def get_rate_limiter() -> SlidingWindowRateLimiter:
    return _limiter


def reset_rate_limiter() -> None:
    _limiter.clear()

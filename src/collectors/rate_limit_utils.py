"""Sliding-window request accounting for collectors."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Dict, Optional

Clock = Callable[[], float]


class RateLimiter:
    """
    Counts requests per key inside a moving time window.

    A key is limited once ``max_requests`` calls were tracked in the last
    ``window_seconds``. Timestamps older than the window are dropped on read.
    """

    def __init__(self, max_requests: int = 10, window_seconds: float = 60.0, clock: Optional[Clock] = None):
        if max_requests < 1:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc).timestamp())
        self._requests: Dict[str, Deque[float]] = {}

    def _recent(self, key: str) -> Deque[float]:
        now = self._clock()
        requests = self._requests.setdefault(key, deque())
        while requests and now - requests[0] >= self.window_seconds:
            requests.popleft()
        return requests

    def track(self, key: str) -> int:
        """Record one request and return how many fall inside the window."""
        requests = self._recent(key)
        requests.append(self._clock())
        return len(requests)

    def is_limited(self, key: str) -> bool:
        return len(self._recent(key)) >= self.max_requests

    def next_available_time(self, key: str) -> Optional[datetime]:
        """When the oldest request in a full window expires; ``None`` when not limited."""
        requests = self._recent(key)
        if len(requests) < self.max_requests:
            return None
        return datetime.fromtimestamp(requests[0], tz=timezone.utc) + timedelta(
            seconds=self.window_seconds
        )

    def remaining(self, key: str) -> int:
        return max(0, self.max_requests - len(self._recent(key)))

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._requests.clear()
        else:
            self._requests.pop(key, None)


__all__ = ["RateLimiter"]

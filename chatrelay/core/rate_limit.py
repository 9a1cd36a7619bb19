"""Per-client sliding-window rate limiting for the public routes."""

from __future__ import annotations

import time
from collections import OrderedDict, deque
from threading import Lock


class SlidingWindowRateLimiter:
    """Thread-safe hit counter with TTL and max-size control."""

    def __init__(self, limit: int, window_seconds: int = 60, max_clients: int = 50000) -> None:
        self.limit = max(1, int(limit))
        self.window_seconds = max(1, int(window_seconds))
        self.max_clients = max(1000, int(max_clients))
        self._hits: OrderedDict[str, deque[float]] = OrderedDict()
        self._lock = Lock()

    def _prune(self, now: float) -> None:
        expiry = now - self.window_seconds
        stale = [client for client, hits in self._hits.items() if not hits or hits[-1] <= expiry]
        for client in stale:
            self._hits.pop(client, None)
        while len(self._hits) > self.max_clients:
            self._hits.popitem(last=False)

    def allow(self, client: str, now: float | None = None) -> bool:
        """Record a hit for ``client``; return False once the window budget is spent."""

        current = time.monotonic() if now is None else now
        expiry = current - self.window_seconds
        with self._lock:
            hits = self._hits.get(client)
            if hits is None:
                if len(self._hits) >= self.max_clients:
                    self._prune(current)
                hits = deque()
                self._hits[client] = hits
            while hits and hits[0] <= expiry:
                hits.popleft()
            self._hits.move_to_end(client)
            if len(hits) >= self.limit:
                return False
            hits.append(current)
            return True

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

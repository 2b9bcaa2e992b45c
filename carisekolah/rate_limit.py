"""Fixed-window request throttling per client identifier.

In-process only: each worker process keeps its own counters.
"""

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from carisekolah import config

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class Allowed:
    pass


@dataclass(frozen=True)
class Throttled:
    retry_after: int  # seconds until the window resets


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Counts requests per identifier in fixed windows.

    Counters are updated under a lock; expired windows are pruned when the
    table grows past ``prune_threshold``.
    """

    def __init__(
        self,
        max_requests: int = config.RATE_LIMIT_MAX_REQUESTS,
        window_seconds: float = config.RATE_LIMIT_WINDOW_SECONDS,
        prune_threshold: int = config.RATE_LIMIT_PRUNE_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.prune_threshold = prune_threshold
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._windows)

    def _prune(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if window.reset_at <= now]
        for key in expired:
            del self._windows[key]

    def check_and_increment(self, identifier: str) -> Allowed | Throttled:
        """Record one request for ``identifier`` and say whether it may proceed."""
        with self._lock:
            now = self._clock()
            if len(self._windows) > self.prune_threshold:
                self._prune(now)

            window = self._windows.get(identifier)
            if window is None or window.reset_at <= now:
                self._windows[identifier] = _Window(count=1, reset_at=now + self.window_seconds)
                return Allowed()

            window.count += 1
            if window.count > self.max_requests:
                retry_after = math.ceil(window.reset_at - now)
                logger.warning("Rate limit exceeded for %s, retry after %ss", identifier, retry_after)
                return Throttled(retry_after=retry_after)
            return Allowed()


def client_identifier(forwarded_for: str | None) -> str:
    """First address of an X-Forwarded-For header, or "unknown"."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return UNKNOWN_CLIENT

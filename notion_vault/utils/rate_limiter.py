"""
Sliding window rate limiter for Notion API calls.

Notion allows roughly 3 requests/second (180/minute) per integration. Requests
are tracked per app+workspace and callers are blocked when the trailing window
is full. The default ceiling of 150/minute leaves a safety margin.

Admission is atomic per key: ``wait_if_necessary`` takes a reservation that
counts against the window until the caller either records the request
(``record_request``) or gives the slot back (``release``). Two threads can
therefore never both be admitted into the last free slot. Reservations older
than the window lapse on their own.

State is process-local and lost on restart.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from ..config import RateLimitConfig, get_config
from .hash_utils import join_key
from .logger import get_logger


class _Window:
    """Per-key state: recorded request times and outstanding reservations."""

    __slots__ = ("lock", "timestamps", "reservations")

    def __init__(self):
        self.lock = threading.Lock()
        self.timestamps: Deque[float] = deque()
        self.reservations: Deque[float] = deque()


class SlidingWindowRateLimiter:
    """
    Thread-safe sliding window limiter keyed by (app_name, workspace_id).

    ``clock`` and ``sleep`` are injectable so tests can drive time explicitly.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config or get_config().rate_limit
        self._clock = clock or time.monotonic
        self._sleep = sleep or time.sleep
        self._windows: Dict[str, _Window] = {}
        self._registry_lock = threading.Lock()
        self.logger = get_logger()

    @property
    def limit(self) -> int:
        return self.config.requests_per_minute

    @staticmethod
    def make_key(app_name: str, workspace_id: str) -> str:
        return join_key(app_name, workspace_id)

    def _get_window(self, key: str, create: bool = True) -> Optional[_Window]:
        with self._registry_lock:
            window = self._windows.get(key)
            if window is None and create:
                window = self._windows[key] = _Window()
            return window

    def _prune(self, window: _Window, now: float) -> None:
        """Drop entries that have left the trailing window. Caller holds ``window.lock``."""
        horizon = self.config.window_seconds
        while window.timestamps and now - window.timestamps[0] >= horizon:
            window.timestamps.popleft()
        while window.reservations and now - window.reservations[0] >= horizon:
            window.reservations.popleft()

    def wait_if_necessary(self, app_name: str, workspace_id: str) -> float:
        """
        Block until a request slot is free for this key, then reserve it.

        Exactly-at-limit counts as full. The wait lasts until the oldest entry
        leaves the window, plus the configured safety buffer.

        Returns:
            Total seconds spent sleeping (0.0 when admitted immediately)
        """
        key = self.make_key(app_name, workspace_id)
        window = self._get_window(key)
        waited = 0.0

        while True:
            with window.lock:
                now = self._clock()
                self._prune(window, now)

                if len(window.timestamps) + len(window.reservations) < self.limit:
                    window.reservations.append(now)
                    return waited

                oldest = min(
                    window.timestamps[0] if window.timestamps else now,
                    window.reservations[0] if window.reservations else now,
                )
                delay = (oldest + self.config.window_seconds - now) + self.config.safety_buffer_seconds

            self.logger.info(
                "Rate limit reached, waiting",
                extra={
                    "app_name": app_name,
                    "workspace_id": workspace_id,
                    "wait_seconds": round(delay, 3),
                    "limit": self.limit,
                },
            )
            self._sleep(delay)
            waited += delay

    def record_request(self, app_name: str, workspace_id: str) -> None:
        """
        Record a request that reached the network, consuming its reservation if any.
        """
        window = self._get_window(self.make_key(app_name, workspace_id))
        with window.lock:
            now = self._clock()
            self._prune(window, now)
            if window.reservations:
                window.reservations.popleft()
            window.timestamps.append(now)

    def release(self, app_name: str, workspace_id: str) -> None:
        """Give back a reservation for a request that never completed."""
        window = self._get_window(self.make_key(app_name, workspace_id), create=False)
        if window is None:
            return
        with window.lock:
            if window.reservations:
                window.reservations.popleft()

    def get_current_request_count(self, app_name: str, workspace_id: str) -> int:
        """Number of recorded requests in the trailing window."""
        window = self._get_window(self.make_key(app_name, workspace_id), create=False)
        if window is None:
            return 0
        with window.lock:
            self._prune(window, self._clock())
            return len(window.timestamps)

    def get_limit_usage_percent(self, app_name: str, workspace_id: str) -> float:
        """Recorded requests as a percentage (0-100) of the configured ceiling."""
        return self.get_current_request_count(app_name, workspace_id) / self.limit * 100

    def reset(self, app_name: str, workspace_id: str) -> None:
        """Forget all tracking for one app+workspace."""
        with self._registry_lock:
            self._windows.pop(self.make_key(app_name, workspace_id), None)

    def clear_all(self) -> None:
        """Forget all tracking."""
        with self._registry_lock:
            self._windows.clear()

    def stats(self) -> Dict[str, Dict[str, float]]:
        """
        Per-key usage for monitoring, keyed by ``"app:workspace"``.

        Keys with no requests in the window are omitted.
        """
        with self._registry_lock:
            windows = list(self._windows.items())

        stats: Dict[str, Dict[str, float]] = {}
        for key, window in windows:
            with window.lock:
                self._prune(window, self._clock())
                count = len(window.timestamps)
                pending = len(window.reservations)
            if count or pending:
                stats[key] = {
                    "requests_in_window": count,
                    "pending": pending,
                    "limit_percent": count / self.limit * 100,
                }
        return stats

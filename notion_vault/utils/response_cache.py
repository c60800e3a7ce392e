"""
Process-local TTL cache for Notion API responses.

Helps reduce API calls and respects rate limits. Entries expire after the TTL
chosen by the call site; expired entries are purged lazily on access or
eagerly by ``cleanup()``. Not shared between processes.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from ..constants import CacheTTL
from .logger import get_logger


class ResponseCache:
    """
    Thread-safe in-memory cache with per-entry expiry.

    Example:
        cache = ResponseCache()
        cache.set("page:abc", payload, ttl_seconds=600)
        cache.get("page:abc")
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            clock: Returns the current time in seconds; defaults to ``time.monotonic``
        """
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self.logger = get_logger()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default

            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return default

            return value

    def set(self, key: str, value: Any, ttl_seconds: float = CacheTTL.DEFAULT) -> None:
        """Store ``value`` until ``now + ttl_seconds``."""
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> bool:
        """Remove one entry; returns False if it was not present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every entry whose key starts with ``prefix``; returns the count."""
        with self._lock:
            keys = [key for key in self._entries if key.startswith(prefix)]
            for key in keys:
                del self._entries[key]

        if keys:
            self.logger.debug(
                "Invalidated cache entries", extra={"prefix": prefix, "removed": len(keys)}
            )
        return len(keys)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Eagerly remove expired entries; returns how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def stats(self) -> Dict[str, int]:
        """Entry counts: ``total``, ``expired`` (not yet purged) and ``active``."""
        with self._lock:
            now = self._clock()
            total = len(self._entries)
            expired = sum(1 for _, expires_at in self._entries.values() if expires_at <= now)

        return {"total": total, "expired": expired, "active": total - expired}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

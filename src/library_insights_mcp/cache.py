"""
Short-lived response cache for report resources.

Report resources are read far more often than the underlying data changes,
so rendered payloads are kept for ``resource_cache_ttl`` seconds keyed by
resource URI. The clock is injected so tests can move time explicitly.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class ResponseCache:
    """
    In-memory TTL cache keyed by resource URI.

    A TTL of 0 disables caching: ``get`` always misses and ``set`` is a
    no-op, so callers do not need a separate code path.
    """

    def __init__(self, ttl_seconds: float = 15, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = max(0.0, float(ttl_seconds))
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or ``None`` when missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            logger.debug("Cache entry expired: %s", key)
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``, dropping any entries that have expired."""
        if not self.enabled:
            return
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = (now + self.ttl_seconds, value)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))

    def get_or_compute(self, key: str, compute: Callable[[], Any]) -> Any:
        """Return the cached value for ``key``, computing and storing it on a miss.

        Exceptions from ``compute`` propagate and nothing is stored.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Cache hit: %s", key)
            return cached
        value = compute()
        self.set(key, value)
        return value

    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; returns the count removed."""
        stale = [key for key in self._entries if key.startswith(prefix)]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Invalidated %d cache entries under %s", len(stale), prefix)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

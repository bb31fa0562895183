"""In-memory cache of aggregated analysis results."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CacheEntry:
    results: Dict[str, Any]
    stored_at: float
    expires_at: float


class ResultCache:
    """Aggregates keyed by analysis id, expired by timestamp.

    Expiry is checked on read. Each ``store`` also drops entries that have
    already expired, so ids that are never read again do not accumulate.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def store(self, key: str, results: Dict[str, Any]) -> None:
        now = self._clock()
        self.purge_expired(now)
        self._entries[key] = CacheEntry(results=results, stored_at=now, expires_at=now + self.ttl_seconds)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry.results

    def purge_expired(self, now: Optional[float] = None) -> int:
        now = self._clock() if now is None else now
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

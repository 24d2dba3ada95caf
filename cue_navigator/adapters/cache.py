"""In-memory CacheStore with per-key time-to-live.

WHY: The HTTP service and the tests need a cache that honours the same
contract a host's storage does (missing and expired keys read as empty,
ttl 0 deletes) without any external service.

HOW: A dict of key → (value, expires_at) guarded by a threading.Lock.
Expiry is checked lazily on read and swept by purge_expired().

RULES:
- get_cache() of a missing or expired key → success=True, data=None
- set_cache() with ttl_seconds <= 0 removes the key
- Stored values are deep-copied in and out (callers cannot alias them)
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

from cue_navigator.controls.base import CacheResult, CacheStore

logger = logging.getLogger(__name__)


class InMemoryCacheStore(CacheStore):
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    async def get_cache(self, key: str) -> CacheResult:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return CacheResult(success=True, data=None)
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                logger.debug("Cache key %s expired", key)
                return CacheResult(success=True, data=None)
            return CacheResult(success=True, data=copy.deepcopy(value))

    async def set_cache(self, key: str, value: Any, ttl_seconds: int) -> CacheResult:
        with self._lock:
            if ttl_seconds <= 0:
                self._entries.pop(key, None)
                return CacheResult(success=True)
            self._entries[key] = (copy.deepcopy(value), self._clock() + ttl_seconds)
        return CacheResult(success=True)

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def peek(self, key: str) -> Optional[Any]:
        """Synchronous read for diagnostics and tests (ignores expiry)."""
        with self._lock:
            entry = self._entries.get(key)
            return copy.deepcopy(entry[0]) if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

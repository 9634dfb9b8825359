"""
Bounded in-memory TTL cache.

Backs the cached-request step: each step instance owns one
:class:`InMemoryCache`, so cached values are never shared between actions or
between two cached fields of the same action.

Manifesto:
    - **Owned, not shared:** No module-level cache instances
    - **TTL first:** Every entry expires; capacity eviction is a backstop
    - **Negative values are explicit:** ``None`` is a storable value, so
      lookups use a sentinel default to tell "cached None" from "absent"

Architecture:
    ::

        InMemoryCache(max_size=1000, default_ttl_seconds=60)
            get(key, default)  → value | default     (lazy expiry)
            set(key, value, ttl_seconds=None)
            delete(key) / exists(key) / clear() / size()

        OrderedDict[key, (value, expires_at)]  oldest access first

Guardrails:
    ❌ DON'T: Depend on which key capacity eviction removes
    ✅ DO: Rely only on TTL expiry and per-instance isolation

Tags:
    cache, ttl, lru, in-memory, relay
"""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

MISSING: Any = object()


class InMemoryCache:
    """Bounded in-memory cache with TTL support.

    Uses LRU eviction when ``max_size`` is reached. Expired entries are
    dropped lazily when they are looked up.

    Example:
        cache = InMemoryCache(max_size=500, default_ttl_seconds=1800)
        cache.set("token:acme", "abc123")
        cache.get("token:acme")
    """

    def __init__(
        self,
        *,
        max_size: int = 1000,
        default_ttl_seconds: float | None = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize in-memory cache.

        Args:
            max_size: Maximum number of keys (LRU eviction after).
            default_ttl_seconds: Default TTL for all keys (``None`` or ``0`` → no expiry).
            clock: Monotonic time source, replaceable in tests.
        """
        self._store: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._max_size = max_size
        self._default_ttl = default_ttl_seconds
        self._clock = clock

    def _expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and self._clock() >= expires_at

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value by key, or ``default`` when absent or expired."""
        entry = self._store.get(key)
        if entry is None:
            return default

        value, expires_at = entry
        if self._expired(expires_at):
            del self._store[key]
            return default

        self._store.move_to_end(key)
        return value

    def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        """Store a value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = (self._clock() + ttl) if ttl else None

        if key in self._store:
            self._store.move_to_end(key)
        elif len(self._store) >= self._max_size:
            self._store.popitem(last=False)

        self._store[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        """Remove a key from the cache."""
        self._store.pop(key, None)

    def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        return self.get(key, MISSING) is not MISSING

    def clear(self) -> None:
        """Remove all keys."""
        self._store.clear()

    def size(self) -> int:
        """Return current number of cached keys (expired ones included until touched)."""
        return len(self._store)


__all__ = [
    "MISSING",
    "InMemoryCache",
]

"""In-process cache of verification keys fetched from the key-management service.

Verifying a token needs the public key of the key version that signed it.
Fetching it is a network round-trip, so keys are cached by key-version name
after the first fetch.

Key versions the service reported as unknown are negative-cached for a short
TTL, so tokens carrying random ``kid`` values fail without a round-trip each.

Limitations:
    Key entries never expire. A key version's public key is immutable in
    Cloud KMS, but a destroyed or disabled version keeps verifying from the
    cache until the entry is invalidated with ``invalidate()`` or ``clear()``.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocols import PublicKey


@dataclass(slots=True)
class _CacheItem:
    """Internal cache entry.

    Attributes:
        value: Fetched public key.
        fetched_at: Unix timestamp of the fetch.
    """

    value: PublicKey
    fetched_at: float


class KeyCache:
    """Thread-safe mapping of key-version name to public key.

    Concurrent misses on the same name may each fetch and ``put``; the last
    write wins, which is harmless since they fetch the same key.

    Example:
        ```python
        cache = KeyCache()
        cache.put(name, public_key)
        cache.get(name)  # public_key

        # Negative caching
        cache.set_missing("bad-name", ttl_seconds=30)
        assert cache.is_missing("bad-name") is True
        ```
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: dict[str, _CacheItem] = {}
        self._missing: dict[str, float] = {}  # key_version -> expires_at

    def get(self, key_version: str) -> PublicKey | None:
        with self._lock:
            item = self._store.get(key_version)
        return item.value if item else None

    def put(self, key_version: str, key: PublicKey) -> None:
        item = _CacheItem(value=key, fetched_at=time.time())
        with self._lock:
            self._missing.pop(key_version, None)
            self._store[key_version] = item

    def set_missing(self, key_version: str, ttl_seconds: int) -> None:
        with self._lock:
            self._missing[key_version] = time.time() + ttl_seconds

    def is_missing(self, key_version: str) -> bool:
        with self._lock:
            expires_at = self._missing.get(key_version)
            if expires_at is None:
                return False
            if time.time() >= expires_at:
                # Lazy removal of expired entry
                del self._missing[key_version]
                return False
            return True

    def fetched_at(self, key_version: str) -> float | None:
        """Return when ``key_version`` was fetched, or None if not cached."""
        with self._lock:
            item = self._store.get(key_version)
        return item.fetched_at if item else None

    def invalidate(self, key_version: str) -> None:
        """Drop one entry, known-missing marks included. Missing entries are ignored."""
        with self._lock:
            self._store.pop(key_version, None)
            self._missing.pop(key_version, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._missing.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def __contains__(self, key_version: object) -> bool:
        with self._lock:
            return key_version in self._store


default_key_cache = KeyCache()
"""Process-wide cache shared by the module-level signing methods."""

"""CacheStore - in-memory LRU cache with per-entry TTL and background sweep.

This service provides the only durability layer for upstream data:
- Size-bounded (max entries), evicting the least recently used entry
- Per-entry TTL, with NEVER_EXPIRES for immutable data (EXIF)
- Expired entries are dropped lazily on read and proactively by a sweep task
- Hit/miss accounting for monitoring

Every public operation takes an internal lock for its in-memory mutation only,
so the cache can be shared by concurrent tasks and threads. The sweep is an
asyncio task owned by whoever constructs the cache (start_sweeper/stop_sweeper).

Cache Key Types:
    - albums:{username} - Album list for an account (24h TTL)
    - images:{album_key} - Image list for an album (1h TTL)
    - exif:{image_key} - EXIF metadata (never expires)
"""

import asyncio
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

NEVER_EXPIRES = math.inf


class CacheTTL:
    """Default TTLs (in seconds) per key class."""

    ALBUMS = 24 * 60 * 60  # 24 hours
    IMAGES = 60 * 60  # 1 hour
    EXIF = NEVER_EXPIRES  # immutable once fetched


@dataclass
class CacheEntry:
    """A single cached value with its bookkeeping."""

    value: Any
    stored_at: float
    ttl: float
    access_count: int = 0
    last_accessed_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return self.ttl != NEVER_EXPIRES and now - self.stored_at > self.ttl


@dataclass
class CacheStats:
    """Snapshot of cache state for monitoring."""

    size: int
    max_size: int
    hit_rate: float
    keys: list[str] = field(default_factory=list)
    oldest_entry: float = 0.0
    newest_entry: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": self.hit_rate,
            "keys": self.keys,
            "oldest_entry": self.oldest_entry,
            "newest_entry": self.newest_entry,
        }


class CacheStore:
    """Size-bounded LRU cache with per-entry TTL.

    Usage:
        ```python
        cache = CacheStore(max_entries=100)
        cache.start_sweeper()  # inside a running event loop
        cache.set(CacheStore.albums_key("nino"), albums, CacheTTL.ALBUMS)
        albums = cache.get(CacheStore.albums_key("nino"))  # None on miss
        await cache.stop_sweeper()
        ```
    """

    DEFAULT_SWEEP_INTERVAL = 5 * 60

    def __init__(
        self,
        max_entries: int = 100,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            max_entries: Maximum number of entries; 0 disables caching
            clock: Time source in seconds (injectable for tests)
        """
        self.max_entries = max(0, max_entries)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._sweeper: asyncio.Task[None] | None = None

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired.

        An expired entry is deleted as a side effect. A hit refreshes the
        entry's LRU position.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            now = self._clock()
            if entry.is_expired(now):
                del self._entries[key]
                self._misses += 1
                return None

            entry.access_count += 1
            entry.last_accessed_at = now
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float = NEVER_EXPIRES) -> None:
        """Store a value, evicting the least recently used entry at capacity.

        Args:
            key: Cache key
            value: Value to store (must not be None)
            ttl: Seconds until expiry, or NEVER_EXPIRES
        """
        if self.max_entries == 0:
            return

        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict_lru()

            now = self._clock()
            self._entries[key] = CacheEntry(
                value=value,
                stored_at=now,
                ttl=ttl,
                access_count=0,
                last_accessed_at=now,
            )

    def has(self, key: str) -> bool:
        """Check presence through get().

        This counts as an access: it refreshes LRU order, updates hit/miss
        counters and purges an expired entry.
        """
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        """Delete a specific entry. Returns True if it existed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all entries and reset hit/miss counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        """Get cache statistics for monitoring."""
        with self._lock:
            total = self._hits + self._misses
            stored = [entry.stored_at for entry in self._entries.values()]
            return CacheStats(
                size=len(self._entries),
                max_size=self.max_entries,
                hit_rate=self._hits / total if total > 0 else 0.0,
                keys=list(self._entries),
                oldest_entry=min(stored) if stored else 0.0,
                newest_entry=max(stored) if stored else 0.0,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -------------------------------------------------------------------------
    # Eviction
    # -------------------------------------------------------------------------

    def evict_expired(self) -> int:
        """Delete every TTL-expired entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items() if entry.is_expired(now)
            ]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info("cache_expired_evicted", count=len(expired))
        return len(expired)

    def _evict_lru(self) -> None:
        """Evict the entry with the oldest last access (caller holds lock).

        min() keeps the first minimal entry, so ties go to the earliest inserted.
        """
        if not self._entries:
            return
        lru_key = min(
            self._entries, key=lambda k: self._entries[k].last_accessed_at
        )
        del self._entries[lru_key]
        logger.debug("cache_lru_evicted", cache_key=lru_key)

    # -------------------------------------------------------------------------
    # Background Sweep
    # -------------------------------------------------------------------------

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        if self.sweeper_running:
            return
        self._sweeper = asyncio.get_running_loop().create_task(
            self._sweep_forever(interval), name="photomirror-cache-sweeper"
        )
        logger.debug("cache_sweeper_started", interval=interval)

    async def stop_sweeper(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is None or sweeper.done():
            return
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        logger.debug("cache_sweeper_stopped")

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.evict_expired()

    # -------------------------------------------------------------------------
    # Cache Key Generators
    # -------------------------------------------------------------------------

    @staticmethod
    def albums_key(username: str) -> str:
        """Generate cache key for an account's album list.

        Returns:
            Cache key (e.g., "albums:nino")
        """
        return f"albums:{username}"

    @staticmethod
    def images_key(album_key: str) -> str:
        """Generate cache key for an album's image list."""
        return f"images:{album_key}"

    @staticmethod
    def exif_key(image_key: str) -> str:
        """Generate cache key for an image's EXIF metadata."""
        return f"exif:{image_key}"

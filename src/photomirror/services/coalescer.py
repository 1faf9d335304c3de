"""Request coalescing for concurrent identical fetches.

Concurrent callers asking for the same key share one in-flight task instead
of each firing an upstream request. The pending entry is removed as soon as
the task settles, before waiters are resumed, so a failure never poisons the
key for later calls.
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RequestCoalescer:
    """Deduplicate in-flight producer calls by key.

    Usage:
        ```python
        coalescer = RequestCoalescer()
        albums = await coalescer.coalesce("albums:nino", fetch_albums)
        ```

    Pending tasks belong to the event loop that created them.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}
        self._lock = threading.Lock()

    async def coalesce(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        """Run producer for key, or join the call already in flight.

        Args:
            key: Logical request key (the cache key of the resource)
            producer: Zero-argument coroutine factory performing the fetch

        Returns:
            The producer's result, shared by every concurrent waiter

        Raises:
            Whatever the producer raised, delivered to every waiter
        """
        with self._lock:
            task = self._pending.get(key)
            if task is None:
                task = asyncio.ensure_future(producer())
                self._pending[key] = task
                task.add_done_callback(lambda done: self._settle(key, done))
            else:
                logger.debug("request_coalesced", key=key)

        # shield: a cancelled waiter must not cancel the fetch others share
        return await asyncio.shield(task)

    def pending_count(self) -> int:
        """Number of keys with a fetch currently in flight."""
        with self._lock:
            return len(self._pending)

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def _settle(self, key: str, task: asyncio.Task[Any]) -> None:
        with self._lock:
            if self._pending.get(key) is task:
                del self._pending[key]
        # Mark the exception retrieved; waiters that are still attached re-raise it.
        if not task.cancelled():
            task.exception()

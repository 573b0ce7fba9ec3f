"""Bounded reference cache for live-merge lookups (device types, locations)."""

import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Hashable
from typing import Any

logger = logging.getLogger(__name__)

Loader = Callable[[Hashable], Awaitable[Any | None]]


class ReferenceCache:
    """LRU cache with a time-to-live, filled on miss.

    Entries older than ``ttl_seconds`` count as misses and are reloaded.
    ``None`` results (row not found) are never stored, so a reference
    created later is picked up on the next lookup.
    """

    def __init__(
        self,
        maxsize: int = 256,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.peek(key) is not None

    def peek(self, key: Hashable) -> Any | None:
        """Fresh cached value for ``key`` without touching recency, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            return None
        return value

    def put(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (self._clock(), value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.maxsize:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted {evicted!r} from reference cache")

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_load(self, key: Hashable, loader: Loader) -> Any | None:
        """Cached value for ``key``, loading it on miss or expiry.

        Loader exceptions propagate to the caller and leave the cache as it was.
        """
        value = self.peek(key)
        if value is not None:
            self.hits += 1
            self._entries.move_to_end(key)
            return value

        self.misses += 1
        self._entries.pop(key, None)
        value = await loader(key)
        if value is not None:
            self.put(key, value)
        return value

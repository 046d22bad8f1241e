"""Bounded conversation-context store with LRU and idle-TTL eviction."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger()

V = TypeVar("V")


class ContextStore(Generic[V]):
    """
    Mapping from conversation id to context, bounded in size and idle time.

    Features:
    - Least-recently-used eviction once ``max_entries`` is exceeded
    - Entries idle longer than ``ttl`` seconds expire on the next access
    - ``on_evict`` callback so owners can release related state
    """

    def __init__(
        self,
        max_entries: int,
        ttl: float | None = None,
        on_evict: Callable[[str, V], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.max_entries = max_entries
        self.ttl = ttl
        self.on_evict = on_evict
        self._clock = clock
        self._entries: OrderedDict[str, tuple[V, float]] = OrderedDict()

    def _evict(self, key: str, reason: str) -> None:
        value, _ = self._entries.pop(key)
        logger.debug("context_evicted", context_id=key, reason=reason)
        if self.on_evict is not None:
            self.on_evict(key, value)

    def purge_expired(self) -> int:
        """Drop every entry idle longer than the TTL. Returns the count removed."""
        if self.ttl is None:
            return 0
        cutoff = self._clock() - self.ttl
        expired = [key for key, (_, touched) in self._entries.items() if touched < cutoff]
        for key in expired:
            self._evict(key, "expired")
        return len(expired)

    def get(self, key: str) -> V | None:
        self.purge_expired()
        entry = self._entries.get(key)
        if entry is None:
            return None
        self._entries[key] = (entry[0], self._clock())
        self._entries.move_to_end(key)
        return entry[0]

    def put(self, key: str, value: V) -> None:
        self.purge_expired()
        self._entries[key] = (value, self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            self._evict(oldest, "capacity")

    def pop(self, key: str) -> V | None:
        """Remove an entry without triggering ``on_evict``."""
        entry = self._entries.pop(key, None)
        return entry[0] if entry else None

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

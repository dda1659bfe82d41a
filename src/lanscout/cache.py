"""Small TTL cache used to short-circuit repeated neighbor lookups."""

import logging
import time
from typing import Any, Callable

logger = logging.getLogger("lanscout.cache")


class ResultCache:
    """
    Key/value cache where every entry expires a fixed number of seconds
    after insertion. Expired entries are dropped lazily on lookup.
    """

    def __init__(self, name: str, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def lookup(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def insert(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock() + self.ttl)
        logger.debug(f"{self.name}: cached {key} for {self.ttl}s")

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def delete_if(self, key: str, value: Any) -> bool:
        """Remove the entry at key only if its live value equals value."""
        if self.lookup(key) == value:
            self._entries.pop(key, None)
            logger.debug(f"{self.name}: invalidated {key}")
            return True
        return False

    def __contains__(self, key: str) -> bool:
        return self.lookup(key) is not None

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for _, expires_at in self._entries.values() if expires_at > now)

from dataclasses import dataclass, field
from time import monotonic
from typing import Callable

from imgate.ratelimit import CounterStore


@dataclass
class MemoryCounterStore(CounterStore):
    """Counters held by this process only, limits are per instance."""

    # key -> (expires_at, value); expires_at None never expires
    storage: dict[str, tuple[float | None, bytes]] = field(default_factory=dict)
    clock: Callable[[], float] = monotonic

    async def put(self, key: str, value: bytes, ttl: int | None = None) -> None:
        now = self.clock()
        self._evict(now)
        expires_at = now + ttl if ttl is not None else None
        self.storage[key] = (expires_at, value)

    async def get(self, key: str) -> bytes | None:
        entry = self.storage.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self.storage[key]
            return None
        return value

    def _evict(self, now: float) -> None:
        expired = [
            key
            for key, (expires_at, _) in self.storage.items()
            if expires_at is not None and now >= expires_at
        ]
        for key in expired:
            del self.storage[key]

import json
import logging
from dataclasses import dataclass
from time import time
from typing import Callable, Protocol, Sequence

logger = logging.getLogger(__name__)


class CounterStoreError(RuntimeError):
    """Raised when the counter store cannot be read or written."""


class CounterStore(Protocol):
    async def put(self, key: str, value: bytes, ttl: int | None = None) -> None: ...

    async def get(self, key: str) -> bytes | None: ...


@dataclass
class RateWindow:
    count: int
    window_start: float

    def dumps(self) -> bytes:
        return json.dumps({"count": self.count, "startTime": self.window_start}).encode()

    @classmethod
    def loads(cls, raw: bytes) -> "RateWindow":
        try:
            data = json.loads(raw)
            return cls(count=int(data["count"]), window_start=float(data["startTime"]))
        except (ValueError, TypeError, KeyError) as e:
            raise CounterStoreError(f"unreadable rate window {raw!r}") from e


def per_client_key(identity: str) -> str:
    return f"rate_limit_{identity}"


def global_key(identity: str) -> str:
    return "rate_limit_global"


@dataclass
class RateLimiter:
    """Fixed window request counter.

    Read-modify-write on the counter is not atomic, concurrent requests
    from one identity can overshoot `max_requests` slightly.
    """

    store: CounterStore
    max_requests: int
    window: float
    key: Callable[[str], str] = per_client_key
    fail_open: bool = True
    clock: Callable[[], float] = time

    async def allow(self, identity: str) -> bool:
        try:
            return await self._allow(self.key(identity))
        except CounterStoreError as e:
            logger.warning("rate limit store unavailable, fail_open=%s: %s", self.fail_open, e)
            return self.fail_open

    async def _allow(self, key: str) -> bool:
        now = self.clock()
        raw = await self.store.get(key)
        current = RateWindow.loads(raw) if raw is not None else None
        if current is not None and now - current.window_start < self.window:
            if current.count >= self.max_requests:
                return False
            current.count += 1
            await self._save(key, current)
            return True
        # first request, or the previous window has expired
        await self._save(key, RateWindow(count=1, window_start=now))
        return True

    async def _save(self, key: str, window: RateWindow) -> None:
        await self.store.put(key, window.dumps(), ttl=max(1, int(self.window)))


@dataclass
class Throttle:
    """Limiters consulted in order, the first denial wins."""

    limiters: Sequence[RateLimiter]

    async def allow(self, identity: str) -> bool:
        for limiter in self.limiters:
            if not await limiter.allow(identity):
                return False
        return True

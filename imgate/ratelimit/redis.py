from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from redis.asyncio import BlockingConnectionPool, Redis
from redis.exceptions import RedisError

from imgate.ratelimit import CounterStore, CounterStoreError


@dataclass
class RedisCounterStore(CounterStore):
    redis: Redis

    @classmethod
    @asynccontextmanager
    async def connect(cls, dsn: str) -> AsyncIterator[RedisCounterStore]:
        pool = BlockingConnectionPool.from_url(dsn)  # type: ignore
        try:
            yield cls(Redis(connection_pool=pool))
        finally:
            await pool.aclose()

    async def get(self, key: str) -> bytes | None:
        try:
            return await self.redis.get(key)  # type: ignore
        except RedisError as e:
            raise CounterStoreError(str(e)) from e

    async def put(self, key: str, value: bytes, ttl: int | None = None) -> None:
        try:
            await self.redis.set(key, value, ex=ttl)  # type: ignore
        except RedisError as e:
            raise CounterStoreError(str(e)) from e

"""Redis-backed stores: a SET for nullifiers, a LIST for balance leaves.

SADD is atomic across processes, so two relays sharing one Redis cannot
both record the same nullifier.
"""

import redis.asyncio as aioredis


class RedisNullifierStore:
    def __init__(self, redis: aioredis.Redis, key: str = "relay:nullifiers") -> None:
        self._redis = redis
        self._key = key

    async def contains(self, nullifier: str) -> bool:
        return bool(await self._redis.sismember(self._key, nullifier))

    async def add(self, nullifier: str) -> bool:
        return int(await self._redis.sadd(self._key, nullifier)) == 1

    async def discard(self, nullifier: str) -> None:
        await self._redis.srem(self._key, nullifier)

    async def count(self) -> int:
        return int(await self._redis.scard(self._key))


class RedisBalanceLeafStore:
    def __init__(self, redis: aioredis.Redis, key: str = "relay:balance_leaves") -> None:
        self._redis = redis
        self._key = key

    async def save(self, leaf_index: int, commitment: str) -> None:
        length = int(await self._redis.rpush(self._key, commitment))
        if length != leaf_index + 1:
            await self._redis.rpop(self._key)
            raise RuntimeError(
                f"Balance leaf list out of sync: wrote index {leaf_index}, list length {length}"
            )

    async def load_all(self) -> list[str]:
        return list(await self._redis.lrange(self._key, 0, -1))

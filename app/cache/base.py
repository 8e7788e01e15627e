from typing import Any, Optional, Set

from app.cache.redis import RedisClient


class BaseCache:
    """
    Base cache abstraction.

    All cache implementations should extend this class.
    """

    def __init__(self, client=None):
        self.client = client if client is not None else RedisClient.get_client()

    # ─────────────────────────────────────────────
    # Core operations
    # ─────────────────────────────────────────────

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache.
        Returns None if key does not exist.
        """
        value = await self.client.get(key)
        if value is None:
            return None
        return RedisClient.deserialize(value)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: int,
    ) -> None:
        """
        Set value in cache with TTL (seconds).
        """
        serialized = RedisClient.serialize(value)
        await self.client.setex(
            key,
            ttl,
            serialized,
        )

    async def delete(self, key: str) -> None:
        await self.client.delete(key)

    # ─────────────────────────────────────────────
    # Set operations
    # ─────────────────────────────────────────────

    async def add_member(self, key: str, member: str) -> None:
        await self.client.sadd(key, member)

    async def remove_member(self, key: str, member: str) -> None:
        await self.client.srem(key, member)

    async def members(self, key: str) -> Set[str]:
        return set(await self.client.smembers(key))

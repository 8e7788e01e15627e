import logging
from datetime import datetime
from typing import Dict, Iterable

from redis.exceptions import RedisError

from app.cache.base import BaseCache
from app.cache.keys import CacheKeys
from app.cache.ttl import CacheTTL

logger = logging.getLogger(__name__)


class PresenceCache(BaseCache):
    """
    Redis mirror of who is online and when they were last seen.

    The in-process PresenceRegistry stays authoritative for routing;
    this mirror serves listings and other processes. Redis outages
    are logged and never break a live session.

    Used by:
    - PresenceService
    - Astrologers API
    """

    async def mark_online(self, user_id: str, at: datetime) -> None:
        try:
            await self.add_member(CacheKeys.ONLINE_USERS, user_id)
            await self.set(CacheKeys.last_seen(user_id), at, ttl=CacheTTL.LAST_SEEN)
        except RedisError as e:
            logger.warning(f"Presence mirror unavailable (online {user_id[:8]}): {e}")

    async def mark_offline(self, user_id: str, at: datetime) -> None:
        try:
            await self.remove_member(CacheKeys.ONLINE_USERS, user_id)
            await self.set(CacheKeys.last_seen(user_id), at, ttl=CacheTTL.LAST_SEEN)
        except RedisError as e:
            logger.warning(f"Presence mirror unavailable (offline {user_id[:8]}): {e}")

    async def last_seen_many(self, user_ids: Iterable[str]) -> Dict[str, str | None]:
        """
        ISO timestamps keyed by user id; None when unknown or Redis is down.
        """
        user_ids = list(user_ids)
        try:
            return {
                user_id: await self.get(CacheKeys.last_seen(user_id))
                for user_id in user_ids
            }
        except RedisError as e:
            logger.warning(f"Presence mirror unavailable (last seen): {e}")
            return {user_id: None for user_id in user_ids}

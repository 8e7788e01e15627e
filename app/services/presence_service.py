import logging
from datetime import datetime
from typing import Callable, Dict, List
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.cache.presence_cache import PresenceCache
from app.domain.sessions.clock import utcnow
from app.persistence.repositories.astrologer_profile_repo import AstrologerProfileRepository
from app.persistence.repositories.user_repo import UserRepository
from app.realtime.presence import LiveConnection, PresenceRegistry

logger = logging.getLogger(__name__)


class PresenceService:
    """
    Registers live connections and applies the side effects of a
    user coming online or going offline.

    The registry is the routing truth. The astrologer profile flags
    and the Redis mirror are best effort: failures are logged.
    """

    def __init__(
        self,
        registry: PresenceRegistry,
        hub,
        session_factory: async_sessionmaker[AsyncSession],
        sessions,
        chat,
        cache: PresenceCache | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.hub = hub
        self.session_factory = session_factory
        self.sessions = sessions
        self.chat = chat
        self.cache = cache
        self.clock = clock

    async def connect(self, connection: LiveConnection) -> None:
        was_online = self.registry.is_online(connection.user_id)
        previous = self.registry.register(connection.user_id, connection)

        try:
            if previous is not None:
                logger.info(f"User {connection.user_id} reconnected, replacing {previous.id[:8]}")
                await previous.send("presence:replaced", {"connection_id": connection.id})

            if not was_online:
                await self._mark(connection.user_id, online=True)
                await self.hub.broadcast(
                    "presence:status",
                    {"user_id": connection.user_id, "online": True},
                    exclude=[connection.user_id],
                )

            await self.chat.flush_pending(connection)
            await self.sessions.handle_reconnect(UUID(connection.user_id))
        except Exception:
            logger.warning(f"Connect of {connection.user_id} failed, rolling back presence")
            await self.disconnect(connection)
            raise

    async def disconnect(self, connection: LiveConnection) -> None:
        user_id = self.registry.unregister(connection)
        if user_id is None:
            # Stale socket of a user who already reconnected
            return

        logger.info(f"User {user_id} went offline")
        await self._mark(user_id, online=False)
        await self.hub.broadcast(
            "presence:status",
            {"user_id": user_id, "online": False},
        )
        await self.sessions.handle_disconnect(UUID(user_id))

    async def list_online(self) -> List[Dict]:
        """
        Online users with their role, for `presence:list`.
        """
        ids = [UUID(user_id) for user_id in self.registry.online_user_ids()]
        async with self.session_factory() as db:
            users = await UserRepository(db).list_by_ids(ids)
        return [
            {"user_id": user.id, "name": user.name, "role": user.role}
            for user in users
        ]

    async def _mark(self, user_id: str, online: bool) -> None:
        now = self.clock()
        try:
            async with self.session_factory() as db:
                await AstrologerProfileRepository(db).set_online(
                    UUID(user_id), is_online=online, at=now
                )
                await db.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Could not update online flag for {user_id}: {e}")

        if self.cache is None:
            return
        if online:
            await self.cache.mark_online(user_id, now)
        else:
            await self.cache.mark_offline(user_id, now)

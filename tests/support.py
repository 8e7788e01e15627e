"""
Shared fixtures for the async test cases: an in-memory database,
fake live connections and a controllable clock.
"""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.persistence.base import Base
from app.persistence.models.astrologer_profile import AstrologerProfile  # noqa: F401
from app.persistence.models.chat_message import ChatMessage  # noqa: F401
from app.persistence.models.live_session import LiveSession
from app.persistence.models.system_config import SystemConfig  # noqa: F401
from app.persistence.models.user import User  # noqa: F401
from app.persistence.models.wallet import Wallet  # noqa: F401
from app.persistence.models.wallet_transaction import WalletTransaction  # noqa: F401
from app.persistence.repositories.astrologer_profile_repo import AstrologerProfileRepository
from app.persistence.repositories.live_session_repo import LiveSessionRepository
from app.persistence.repositories.user_repo import UserRepository
from app.persistence.repositories.wallet_repo import WalletRepository

START = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


async def make_database():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, factory


class FrozenClock:
    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeConnection:
    """
    Stands in for realtime.connection.Connection and records events.
    """

    def __init__(self, user_id, alive: bool = True):
        self.id = uuid.uuid4().hex
        self.user_id = str(user_id)
        self.alive = alive
        self.sent = []

    async def send(self, event: str, data=None) -> bool:
        if not self.alive:
            return False
        self.sent.append((event, data or {}))
        return True

    def events(self, name: str) -> list:
        return [data for event, data in self.sent if event == name]

    def last(self, name: str):
        found = self.events(name)
        return found[-1] if found else None


# ─────────────────────────────────────────────
# Seed helpers
# ─────────────────────────────────────────────

async def seed_user(
    factory,
    name: str,
    role: str = "client",
    balance=None,
    rate=None,
) -> uuid.UUID:
    async with factory() as db:
        user = await UserRepository(db).create(name=name, role=role)
        if role == "astrologer":
            await AstrologerProfileRepository(db).create(
                user.id,
                rate_per_minute=Decimal(str(rate)) if rate is not None else None,
            )
        if balance is not None:
            await WalletRepository(db).create(user.id, balance=Decimal(str(balance)))
        await db.commit()
        return user.id


async def seed_session(
    factory,
    client_id,
    astrologer_id,
    status: str = "active",
    kind: str = "chat",
    rate="10.00",
    accepted_at: datetime | None = START,
    is_free: bool = False,
) -> uuid.UUID:
    async with factory() as db:
        live = await LiveSessionRepository(db).create(
            kind=kind,
            client_id=client_id,
            astrologer_id=astrologer_id,
            status=status,
            requested_at=START - timedelta(seconds=30),
            accepted_at=accepted_at if status != "requested" else None,
            rate_per_minute=Decimal(rate),
            is_free=is_free,
        )
        await db.commit()
        return live.id


async def balance_of(factory, user_id) -> Decimal | None:
    async with factory() as db:
        wallet = await WalletRepository(db).get_for_user(user_id)
        return wallet.balance if wallet else None


async def load_session(factory, session_id) -> LiveSession:
    async with factory() as db:
        return await LiveSessionRepository(db).get_by_id(session_id)


async def ledger_for(factory, session_id) -> list:
    async with factory() as db:
        return await WalletRepository(db).list_for_session(session_id)

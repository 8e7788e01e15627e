from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings
from app.persistence.base import Base  # noqa: F401  (re-exported for Alembic)

# ─────────────────────────────────────────────────────────────
# Database Engine
# ─────────────────────────────────────────────────────────────

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,          # SQL logs only in debug
    pool_pre_ping=True,           # avoids stale connections
)

# ─────────────────────────────────────────────────────────────
# Session Factory
# ─────────────────────────────────────────────────────────────

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,       # billing timers keep rows across commits
    autoflush=False,
    autocommit=False,
)

# ─────────────────────────────────────────────────────────────
# Dependency for FastAPI
# ─────────────────────────────────────────────────────────────

async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yields an async database session.

    Usage:
        db: AsyncSession = Depends(get_db_session)
    """
    async with AsyncSessionLocal() as session:
        yield session

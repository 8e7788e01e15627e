from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.repositories.base import BaseRepository
from app.persistence.models.system_config import SystemConfig


class SystemConfigRepository(BaseRepository[SystemConfig]):
    """
    Repository for SystemConfig key/value rows.
    """

    model = SystemConfig

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def get_value(self, key: str, default: Any = None) -> Any:
        stmt = select(SystemConfig).where(SystemConfig.key == key)
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        return row.value if row else default

    async def set_value(
        self,
        key: str,
        value: Any,
        updated_by=None,
        description: str | None = None,
    ) -> SystemConfig:
        """
        Upsert a config value.
        """
        stmt = select(SystemConfig).where(SystemConfig.key == key)
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()

        if row is None:
            row = SystemConfig(key=key, value=value)
            self.session.add(row)

        row.value = value
        row.updated_by = updated_by
        if description is not None:
            row.description = description

        await self.session.flush()
        return row

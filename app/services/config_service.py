from decimal import Decimal, InvalidOperation
from typing import Any, Dict
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.domain.sessions.errors import InvalidEventError
from app.domain.sessions.pricing import to_money
from app.domain.sessions.states import SessionKind
from app.persistence.models.system_config import CONFIG_KEYS
from app.persistence.repositories.astrologer_profile_repo import AstrologerProfileRepository
from app.persistence.repositories.system_config_repo import SystemConfigRepository


class ConfigService:
    """
    Runtime switches stored in `system_config`, with settings as fallback.

    Used by:
    - SessionService (rates, test mode)
    - Admin config API
    """

    def defaults(self) -> Dict[str, Any]:
        return {
            "default_chat_rate": settings.DEFAULT_CHAT_RATE,
            "default_call_rate": settings.DEFAULT_CALL_RATE,
            "test_mode_enabled": False,
        }

    async def get(self, *, session: AsyncSession, key: str) -> Any:
        self._check_key(key)
        return await SystemConfigRepository(session).get_value(
            key, self.defaults()[key]
        )

    async def set(
        self,
        *,
        session: AsyncSession,
        key: str,
        value: Any,
        updated_by: UUID | None = None,
    ) -> Any:
        """
        Validate and store a value. Caller commits.
        """
        self._check_key(key)
        value = self._coerce(key, value)
        row = await SystemConfigRepository(session).set_value(
            key, value, updated_by=updated_by
        )
        return row.value

    async def test_mode(self, *, session: AsyncSession) -> bool:
        return bool(await self.get(session=session, key="test_mode_enabled"))

    async def rate_for(
        self,
        *,
        session: AsyncSession,
        astrologer_id: UUID,
        kind: SessionKind,
    ) -> Decimal:
        """
        Per-minute rate: the astrologer's own, else the configured
        default for the session kind.
        """
        profile = await AstrologerProfileRepository(session).get_for_user(astrologer_id)
        if profile is not None and profile.rate_per_minute is not None:
            return to_money(profile.rate_per_minute)

        key = "default_call_rate" if kind.is_call else "default_chat_rate"
        return to_money(await self.get(session=session, key=key))

    # ─────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────

    def _check_key(self, key: str) -> None:
        if key not in CONFIG_KEYS:
            raise InvalidEventError(f"Unknown config key '{key}'")

    def _coerce(self, key: str, value: Any) -> Any:
        if key == "test_mode_enabled":
            if not isinstance(value, bool):
                raise InvalidEventError("test_mode_enabled must be a boolean")
            return value

        if isinstance(value, bool):
            raise InvalidEventError(f"{key} must be a number")
        try:
            rate = to_money(value)
        except (InvalidOperation, ValueError):
            raise InvalidEventError(f"{key} must be a number")
        if not rate.is_finite():
            raise InvalidEventError(f"{key} must be a number")
        if rate < 0:
            raise InvalidEventError(f"{key} must not be negative")
        # JSON column, stored as a float
        return float(rate)

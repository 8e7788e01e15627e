from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.admin.schemas import ConfigResponse, ConfigUpdateRequest
from app.api.dependencies import CurrentUser, require_admin
from app.persistence.db import get_db_session
from app.services.config_service import ConfigService


router = APIRouter()


@router.get("/{key}", response_model=ConfigResponse)
async def get_config(
    key: str,
    session: AsyncSession = Depends(get_db_session),
):
    value = await ConfigService().get(session=session, key=key)
    return {"key": key, "value": value}


@router.put("/{key}", response_model=ConfigResponse)
async def update_config(
    key: str,
    payload: ConfigUpdateRequest,
    session: AsyncSession = Depends(get_db_session),
    admin: CurrentUser = Depends(require_admin),
):
    """
    Change a runtime switch: default_chat_rate, default_call_rate
    or test_mode_enabled. Applies to sessions requested afterwards.
    """
    value = await ConfigService().set(
        session=session,
        key=key,
        value=payload.value,
        updated_by=admin.id,
    )
    await session.commit()
    return {"key": key, "value": value, "updated_by": admin.id}

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.admin.schemas import WalletCreditRequest
from app.api.v1.schemas import WalletResponse
from app.persistence.db import get_db_session
from app.services.wallet_service import WalletService


router = APIRouter()


@router.post(
    "/{user_id}/credit",
    response_model=WalletResponse,
    summary="Top up a user's wallet",
)
async def credit_wallet(
    user_id: UUID,
    payload: WalletCreditRequest,
    session: AsyncSession = Depends(get_db_session),
):
    return await WalletService().credit(
        session=session,
        user_id=user_id,
        amount=payload.amount,
        description=payload.description,
    )

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import CurrentUser, get_current_user
from app.api.v1.schemas import TransactionListResponse, WalletResponse
from app.persistence.db import get_db_session
from app.services.wallet_service import WalletService

router = APIRouter()


@router.get("", response_model=WalletResponse, summary="Current balance")
async def get_wallet(
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    return await WalletService().get_wallet(session=session, user_id=user.id)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int = 50,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Ledger entries, newest first.
    """
    items = await WalletService().list_transactions(
        session=session,
        user_id=user.id,
        limit=min(limit, 200),
    )
    return {"items": items}

from fastapi import APIRouter, Depends

from app.api.dependencies import require_admin
from app.api.admin.sessions import router as sessions_router
from app.api.admin.wallets import router as wallets_router
from app.api.admin.config import router as config_router


router = APIRouter(
    dependencies=[Depends(require_admin)]
)

router.include_router(
    sessions_router,
    prefix="/sessions",
    tags=["Admin – Sessions"],
)

router.include_router(
    wallets_router,
    prefix="/wallets",
    tags=["Admin – Wallets"],
)

router.include_router(
    config_router,
    prefix="/config",
    tags=["Admin – Config"],
)

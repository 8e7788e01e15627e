from fastapi import APIRouter

from app.api.v1.routes.health import router as health_router
from app.api.v1.routes.sessions import router as sessions_router
from app.api.v1.routes.wallet import router as wallet_router
from app.api.v1.routes.astrologers import router as astrologers_router
from app.api.v1.routes.live import router as live_router

from app.api.admin.router import router as admin_router
api_router = APIRouter()

# ─────────────────────────────────────────────
# Public Routes
# ─────────────────────────────────────────────

api_router.include_router(
    health_router,
    tags=["Health"],
)

api_router.include_router(sessions_router, prefix="/sessions", tags=["Sessions"])
api_router.include_router(wallet_router, prefix="/wallet", tags=["Wallet"])
api_router.include_router(astrologers_router, prefix="/astrologers", tags=["Astrologers"])
api_router.include_router(live_router, prefix="/live", tags=["Live"])

# ─────────────────────────────────────────────
# Admin Routes
# ─────────────────────────────────────────────

api_router.include_router(
    admin_router,
    prefix="/admin",
    tags=["Admin"],
)

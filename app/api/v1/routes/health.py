from fastapi import APIRouter, Depends

from app.api.dependencies import get_runtime
from app.config import settings
from app.realtime.runtime import LiveRuntime

router = APIRouter()


@router.get("/health", summary="Health check")
async def health_check(runtime: LiveRuntime = Depends(get_runtime)):
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "connections": len(runtime.registry),
        "billing_timers": len(runtime.sessions.scheduler.active()),
    }

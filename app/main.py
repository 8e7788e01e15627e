import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.router import api_router
from app.cache.presence_cache import PresenceCache
from app.cache.redis import RedisClient
from app.config import settings
from app.domain.sessions.errors import SessionError
from app.persistence.db import AsyncSessionLocal, engine
from app.realtime.runtime import LiveRuntime

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime = LiveRuntime(AsyncSessionLocal, cache=PresenceCache())
    app.state.live = runtime
    await runtime.start()
    logger.info(f"{settings.APP_NAME} started ({settings.ENV})")
    try:
        yield
    finally:
        await runtime.shutdown()
        await RedisClient.close()
        await engine.dispose()


app = FastAPI(title="AstroSeva Live", lifespan=lifespan)

# 1. Enable CORS for the web and mobile clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 2. Domain errors become JSON with a stable code
@app.exception_handler(SessionError)
async def session_error_handler(request: Request, exc: SessionError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "code": exc.code},
    )


# 3. Include API Routes
app.include_router(api_router, prefix="/api/v1")

if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", type=str, default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    logger.info(f"Server starting on {args.host}:{args.port}")
    uvicorn.run("app.main:app", host=args.host, port=args.port, reload=settings.DEBUG)

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ─── App ──────────────────────────────
    APP_NAME: str = "astroseva-live"
    ENV: str = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ─── Database ─────────────────────────
    DATABASE_URL: str

    # ─── Redis ────────────────────────────
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None

    # ─── Auth ─────────────────────────────
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24

    # ─── Billing ──────────────────────────
    CHAT_BILLING_INTERVAL_SECONDS: float = 1.0
    CALL_BILLING_INTERVAL_SECONDS: float = 5.0
    PLATFORM_COMMISSION_RATE: float = 0.10
    DEFAULT_CHAT_RATE: float = 1.0
    DEFAULT_CALL_RATE: float = 1.0
    MIN_BALANCE_MINUTES: int = 1
    CURRENCY: str = "INR"

    # ─── Live sessions ────────────────────
    REQUEST_TIMEOUT_SECONDS: float = 60.0
    RECONNECT_GRACE_SECONDS: float = 10.0
    WS_IDLE_TIMEOUT_SECONDS: float = 60.0
    PENDING_MESSAGE_LIMIT: int = 100


    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

"""
Canteen Portal — Configuration
All settings are read from environment variables (or .env file).
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "canteen-portal"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── JWT ──────────────────────────────────────────────────
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 24 * 60

    # ── PostgreSQL ────────────────────────────────────────────
    POSTGRES_HOST: str = "canteen-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "canteen_db"
    POSTGRES_USER: str = "canteen_user"
    POSTGRES_PASSWORD: str = "canteen_pass"
    DATABASE_URL: str = ""  # full async URL override, e.g. sqlite+aiosqlite:///./canteen.db

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis ─────────────────────────────────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── Rate Limiting / Idempotency ───────────────────────────
    RATE_LIMIT_MAX_ATTEMPTS: int = 5
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    IDEMPOTENCY_KEY_TTL_SECONDS: int = 86400

    # ── Payment Gateway (Razorpay) ────────────────────────────
    RAZORPAY_KEY_ID: str = "rzp_test_key"
    RAZORPAY_KEY_SECRET: str = "CHANGE_ME_IN_PRODUCTION"
    RAZORPAY_BASE_URL: str = "https://api.razorpay.com/v1"
    PAYMENT_CURRENCY: str = "INR"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # ── Pickup QR ─────────────────────────────────────────────
    QR_SIGNING_SECRET: str = "CHANGE_ME_IN_PRODUCTION"

    # ── Business Rules ────────────────────────────────────────
    DEFAULT_USER_PASSWORD: str = "temp123"
    STAFF_SERVE_REQUIRES_READY: bool = False

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()

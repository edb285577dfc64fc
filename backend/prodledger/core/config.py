"""Application configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed settings exposed via dependency injection throughout the app."""

    # Read .env with BOM tolerance; case-sensitive keys
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=True,
    )

    APP_NAME: str = "Production Ledger API"
    ENV: str = "dev"  # dev | staging | prod
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # JWT (tokens are issued upstream; we only verify and read claims)
    JWT_SECRET: str  # set via env/.env
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str | None = None
    JWT_AUDIENCE: str | None = None

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = Field(default_factory=list)

    # DB
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "appadmin"
    DB_PASSWORD: str = ""  # set via env/.env
    DB_NAME: str = "erp"
    DATABASE_URL_OVERRIDE: str | None = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ISOLATION_LEVEL: str = "READ COMMITTED"
    DB_RETRY_ATTEMPTS: int = 4
    DB_RETRY_BASE_DELAY: float = 0.05
    DB_RETRY_JITTER: float = 0.025
    INNODB_LOCK_WAIT_TIMEOUT_SEC: int = 10
    SELECT_MAX_EXECUTION_TIME_MS: int = 5000
    DB_NOWAIT_LOCKS: bool = False

    # Ledger
    LEDGER_TXN_TIMEOUT_SEC: float = 15.0
    # Attempts made when the group row version moved under us before giving up with 409.
    LEDGER_CONFLICT_RETRIES: int = 3
    # SlowAPI syntax, see prodledger.core.rate_limit.limiter
    LEDGER_UPDATE_RATE: str = "120/minute"
    RATE_LIMIT_ENABLED: bool = True
    IDEMPOTENCY_KEY_MAX_LENGTH: int = 128

    SCHEDULE_ID_PREFIX: str = "PS"
    SCHEDULE_ID_DIGITS: int = 5

    # Maximum accepted request body size.
    MAX_BODY_BYTES: int = 1 * 1024 * 1024  # 1 MB

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )

    @property
    def is_mysql(self) -> bool:
        return self.DATABASE_URL.startswith("mysql")


settings = Settings()

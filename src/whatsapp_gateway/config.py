from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    CORS_ORIGINS: list[str] = ["*"]

    WHATSAPP_API_URL: str = "https://graph.facebook.com"
    WHATSAPP_API_VERSION: str = "v18.0"
    WHATSAPP_PHONE_NUMBER_ID: str = ""
    WHATSAPP_ACCESS_TOKEN: str = ""
    WHATSAPP_WEBHOOK_VERIFY_TOKEN: str = ""
    WHATSAPP_APP_SECRET: str = ""
    WHATSAPP_HTTP_TIMEOUT: float = 15.0

    REPLY_GENERATOR_URL: str | None = None
    REPLY_GENERATOR_TOKEN: str = ""
    REPLY_TIMEOUT_SECONDS: float = 45.0
    HISTORY_LIMIT: int = 20

    BULK_BATCH_SIZE: int = 10
    BULK_BATCH_PAUSE_SECONDS: float = 1.0

    REENGAGEMENT_TEMPLATE: str = "session_greeting"
    SESSION_SWEEP_INTERVAL: float = 300.0
    SESSION_SWEEP_SEND_REENGAGEMENT: bool = False

    PLACEHOLDER_EMAIL_DOMAIN: str = "placeholder.curatedascents.com"

    WEBHOOK_STREAM: str = "whatsapp.webhooks"
    WEBHOOK_GROUP: str = "whatsapp-gateway"
    WEBHOOK_CONSUMER_CONCURRENCY: int = 10

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def whatsapp_configured(self) -> bool:
        return bool(
            self.WHATSAPP_PHONE_NUMBER_ID
            and self.WHATSAPP_ACCESS_TOKEN
            and self.WHATSAPP_WEBHOOK_VERIFY_TOKEN
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Tourbook API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str = "sqlite:///./tourbook.db"

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"
    DB_WAIT_TIMEOUT: int = 60

    # Notification delivery (push/poll transport lives elsewhere; this is only the outbox hand-off)
    NOTIFICATION_WEBHOOK_URL: str = ""
    NOTIFICATION_WEBHOOK_TOKEN: str = ""

    # Booking policy
    BOOKING_NUMBER_PREFIX: str = "BK"
    CURRENCY: str = "VND"
    REJECT_REASON_MIN_LENGTH: int = 10
    CUSTOMER_CANCEL_REASON_MIN_LENGTH: int = 0
    ALLOW_CANCEL_CONFIRMED: bool = True  # customer/host may cancel after acceptance
    NOTES_MAX_LENGTH: int = 1000


settings = Settings()

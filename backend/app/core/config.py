from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import ClassVar
from pathlib import Path


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # JWT configuration (provide a fallback for local development)
    SECRET_KEY: str = "fallback_secret_for_dev_only"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'rainbow_paws.db'}"

    # Redis connection URL for cross-instance SSE fan-out
    REDIS_URL: str = "redis://localhost:6379/0"
    SSE_BUS_ENABLED: bool = False
    SSE_KEEPALIVE_SECONDS: int = 30

    # Base URL of the web app, used for absolute links inside emails
    APP_URL: str = "http://localhost:3000"

    # Comma-separated list of browser origins allowed to call the API
    CORS_ORIGINS: str = "http://localhost:3000"

    # SMTP settings for outgoing email
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "no-reply@rainbowpaws.ph"
    SMTP_STARTTLS: bool = True

    # Twilio SMS credentials; SMS is skipped when unset
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_FROM_NUMBER: str = ""

    # Reminder worker
    REMINDERS_ENABLED: bool = True
    REMINDER_INTERVAL_SECONDS: int = 300

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("APP_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


settings = Settings()

REDIS_URL = settings.REDIS_URL

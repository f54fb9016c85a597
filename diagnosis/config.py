from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Mentor Diagnosis"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "*"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/diagnosis.db"
    SAVE_RETRY_ATTEMPTS: int = 3

    # Security
    SECRET_KEY: str = "your-secret-key-here-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours

    # Admin
    ADMIN_EMAIL: str = "admin@salesprime.com.br"
    ADMIN_PASSWORD_HASH: Optional[str] = None  # bcrypt hash, admin login disabled when unset

    # HubSpot (member verification)
    HUBSPOT_PRIVATE_TOKEN: Optional[str] = None
    HUBSPOT_API_URL: str = "https://api.hubapi.com"
    HUBSPOT_WIN_STAGE: str = "closedwon"

    # Completion webhook
    COMPLETION_WEBHOOK_URL: Optional[str] = None
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0
    RENOTIFY_ON_RECOMPLETION: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()

"""
Tenant Migration - Configuration
"""
from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # Credential vault (Fernet key, base64). Generated per process when unset.
    ENCRYPTION_KEY: Optional[str] = None

    # CRM platform API
    PLATFORM_API_URL: str = "https://services.leadconnectorhq.com"
    PLATFORM_API_VERSION: str = "2021-07-28"
    PLATFORM_REQUEST_TIMEOUT: float = 30.0  # seconds, hard bound per call
    PLATFORM_RATE_LIMIT: float = 10.0  # requests per second per account

    # Migration engine
    MIGRATION_PAGE_SIZE: int = 100
    MIGRATION_WORKER_CONCURRENCY: int = 5
    MIGRATION_MAX_ATTEMPTS: int = 4
    MIGRATION_BACKOFF_BASE: float = 1.0
    MIGRATION_BACKOFF_MAX: float = 30.0
    ANALYZER_CONCURRENCY: int = 4

    # Status reporting
    STATUS_POLL_INTERVAL_SECONDS: int = 2
    HISTORY_LIMIT: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

settings = Settings()

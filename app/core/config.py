from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"

    # API Settings
    PROJECT_NAME: str = "Tasvieh API"
    API_PREFIX: str = "/api"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Payment allocation and debt reconciliation API"

    # MongoDB (transactions need a replica set)
    MONGODB_URL: str = "mongodb://localhost:27017/?replicaSet=rs0"
    DATABASE_NAME: str = "tasvieh"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5000"]

    # JWT
    JWT_SECRET: str = "change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 30

    # Representative lock
    ALLOCATION_LOCK_TIMEOUT_SECONDS: float = 5.0
    ALLOCATION_LOCK_LEASE_SECONDS: float = 60.0
    ALLOCATION_LOCK_POLL_INTERVAL_SECONDS: float = 0.1

    # Reconciliation
    RECONCILE_MAX_ATTEMPTS: int = 3

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()

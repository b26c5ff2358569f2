
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Cinema Booking Service"
    API_V1_STR: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Shared secret for service-to-service calls (payment callback, catalog).
    # Empty means the check is bypassed (development).
    SERVICE_TOKEN: str = ""

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "12345"
    POSTGRES_DB: str = "booking_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = None
    DB_POOL_TIMEOUT_SECONDS: int = 10
    DB_STATEMENT_TIMEOUT_MS: int = 5000

    # Seat holds
    HOLD_DURATION_MINUTES: int = 10

    # Reclaimer
    RECLAIMER_ENABLED: bool = True
    EXPIRE_SWEEP_INTERVAL_SECONDS: int = 60
    PURGE_SWEEP_INTERVAL_SECONDS: int = 60 * 60
    EXPIRED_RETENTION_HOURS: int = 24

    # Movie catalog service
    CATALOG_SERVICE_URL: str = "http://localhost:3001"
    CATALOG_TIMEOUT_SECONDS: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()

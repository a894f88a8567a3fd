"""Environment-driven settings for the dashboard backend."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings. Every field can be overridden from the environment or `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Runtime
    ENVIRONMENT: str = "development"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:4200", "http://localhost:3000"]

    # Database
    DATABASE_TYPE: str = "sqlite"  # "sqlite" or "postgresql"
    DATABASE_URL: str = "sqlite:./dev.db"
    SEED_DATA: bool = False

    # Background loops (seconds)
    UPDATE_INTERVAL: float = 30.0
    ALERT_INTERVAL: float = 60.0
    COLLECTOR_SOURCE: str = "simulated"  # "simulated" or "upstream"

    # Upstream APIs
    CACHE_TTL: float = 30.0
    HTTP_TIMEOUT: float = 10.0
    FETCH_POLICY: str = "fallback"  # "fallback" or "strict"
    COINGECKO_API_KEY: str = ""
    ETHERSCAN_API_KEY: str = ""

    # Notifications
    ALERT_WEBHOOK_URL: str = ""

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

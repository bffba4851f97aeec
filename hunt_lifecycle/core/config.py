# hunt_lifecycle/core/config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Values come from the process environment (Docker Compose / .env export).
    model_config = SettingsConfigDict(extra="ignore")

    # The environment mode: 'local' or 'prod'
    ENV: str = "local"

    # --- Production URLs (for inside Docker) ---
    DATABASE_URL_PROD: str = ""
    REDIS_URL_PROD: str = ""

    # --- Local Development URLs (for running locally) ---
    DATABASE_URL_LOCAL: str = "sqlite:///./hunts.db"
    REDIS_URL_LOCAL: str = "redis://localhost:6379/0"

    # Secrets
    JWT_SECRET: str = "change-me"
    CRON_SECRET: str = "change-me"
    STRIPE_SECRET_KEY: Optional[str] = None

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    CLEANUP_SWEEP_INTERVAL_MINUTES: int = 60
    PRESTART_SWEEP_INTERVAL_SECONDS: int = 60

    # --- Dynamic Properties ---
    @property
    def DATABASE_URL(self) -> str:
        return (
            self.DATABASE_URL_LOCAL if self.ENV == "local" else self.DATABASE_URL_PROD
        )

    @property
    def REDIS_URL(self) -> str:
        return self.REDIS_URL_LOCAL if self.ENV == "local" else self.REDIS_URL_PROD


# Create a single instance of the settings
settings = Settings()

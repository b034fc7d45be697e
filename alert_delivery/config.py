from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ALERTING_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    APP_NAME: str = "Alerting System"
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # How often the reminder sweep runs; independent of each alert's own frequency
    REMINDER_SWEEP_INTERVAL_MINUTES: float = 2
    DEFAULT_REMINDER_FREQUENCY_MINUTES: int = 120
    START_REMINDER_TIMER: bool = True

    @field_validator("REMINDER_SWEEP_INTERVAL_MINUTES", "DEFAULT_REMINDER_FREQUENCY_MINUTES")
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()

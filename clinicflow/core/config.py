from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str

    # Slot calendar
    slot_step_minutes: int = 30
    max_recommended_times_per_window: int = 24

    # Pharmacy alerts
    expiry_warning_days: int = 30

    # Listing
    default_page_size: int = 10
    max_page_size: int = 100

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()

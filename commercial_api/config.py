"""API configuration loaded from environment variables (prefix ``COMMERCIAL_``)."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="COMMERCIAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    service_name: str = "commercial-analytics"
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    # Requests carry their own records; larger payloads are rejected with 413.
    max_records: int = 200_000


settings = Settings()

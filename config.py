from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    data_dir: Path = Path("data")

    tmdb_api_key: str = ""
    tmdb_retry_attempts: int = Field(default=3, ge=1, le=5)
    gplinks_api_token: str = ""
    discord_bot_token: str = ""

    admin_user_ids: list[str] = Field(default_factory=list)
    global_request_channel_id: Optional[str] = None

    announcement_schedule: str = "0 */6 * * *"
    stale_request_days: int = Field(default=30, ge=1)
    available_languages: list[str] = Field(
        default_factory=lambda: ["hindi", "english", "tamil", "telugu"]
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @field_validator("announcement_schedule")
    @classmethod
    def validate_cron(cls, v: str) -> str:
        if len(v.split()) != 5:
            raise ValueError("ANNOUNCEMENT_SCHEDULE must be a 5-field cron expression")
        return v

    @field_validator("available_languages")
    @classmethod
    def normalize_languages(cls, v: list[str]) -> list[str]:
        return [lang.strip().lower() for lang in v if lang.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()

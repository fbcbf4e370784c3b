from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(env_file=(".env",), env_file_encoding="utf-8", extra="ignore")

    app_env: Literal["development", "production", "test"] = "development"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"
    allowed_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    database_url: str = "sqlite+aiosqlite:///./alerthub.db"
    # Auth/JWT settings
    jwt_secret: str = Field(default="changeme-in-prod", description="Secret key for signing JWTs")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_exp_minutes: int = Field(default=60, description="Access token expiration in minutes")
    # Group notification (webhook robot)
    notify_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for a single webhook POST")
    default_webhook_url: str | None = Field(
        default=None, description="Webhook used when an event's send group has none configured"
    )

    @computed_field
    @property
    def is_debug(self) -> bool:
        return self.app_env == "development"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="REMOTE_",
        extra="allow",
    )

    # app
    log_level: str = "INFO"
    app_env: str = "dev"

    # host api (the UI talks to this)
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # remote server
    remote_host: str = "0.0.0.0"
    remote_port: int = 3456
    remote_web_dir: Optional[str] = None

    # supervisor timings
    stop_grace_s: float = 1.0
    start_timeout_s: float = 10.0
    channel_poll_s: float = 0.2

    # auth (stored only, not enforced)
    enable_auth: bool = False
    pin: Optional[str] = None

    # content store
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db: str = "presenter"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Link portal settings, read from the environment and an optional .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Admin gate; an empty pin means every verify-pin attempt is rejected
    admin_pin: str = ""
    admin_session_secret: Optional[str] = None

    host: str = "127.0.0.1"
    port: int = 3000

    data_file: Path = Path("data.json")
    path_prefix: str = "/divine"
    static_dir: Path = Path("static")
    max_body_bytes: int = 16 * 1024

    # Only enable behind a reverse proxy that overwrites X-Forwarded-For
    trust_proxy_headers: bool = False

    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("path_prefix")
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""
Configuration management using pydantic-settings.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from btcsend.assembler import DEFAULT_FETCH_CONCURRENCY
from btcsend.backends.http import DEFAULT_BROADCAST_URL, DEFAULT_EXPLORER_URL, DEFAULT_TIMEOUT
from btcsend.models import NetworkType


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BTCSEND_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: NetworkType = NetworkType.MAINNET

    explorer_url: str = DEFAULT_EXPLORER_URL
    broadcast_url: str = DEFAULT_BROADCAST_URL
    request_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    fetch_concurrency: int = Field(default=DEFAULT_FETCH_CONCURRENCY, ge=1)

    http_host: str = "127.0.0.1"
    http_port: int = Field(default=3000, ge=1, le=65535)

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()

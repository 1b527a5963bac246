"""Application configuration utilities.

This module defines application settings loaded from environment variables.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_HOSTS: tuple[str, ...] = (
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "youtu.be",
)


class Settings(BaseSettings):
    """Typed application settings loaded from the environment.

    Notes
    -----
    - Environment variables are read with the ``VR_`` prefix (e.g., ``VR_CHUNK_SIZE``).
    - List values (``allowed_hosts``, ``cors_origins``) are given as JSON arrays,
      e.g. ``VR_ALLOWED_HOSTS='["youtube.com"]'``.
    - An empty ``allowed_hosts`` list disables the host check; any absolute
      http(s) URL is then forwarded to the provider.
    """

    model_config = SettingsConfigDict(env_prefix="VR_", env_file=".env", extra="ignore")

    app_name: str = Field(default="Video Relay", description="Application display name")
    debug: bool = Field(default=False, description="Enable debug mode")
    allowed_hosts: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_HOSTS),
        description="Hosts (and their subdomains) accepted as video URLs",
    )
    target_container: str = Field(
        default="mp4",
        description="Container tag kept in the combined video+audio format list",
    )
    chunk_size: int = Field(
        default=64 * 1024,
        gt=0,
        description="Size in bytes of the chunks relayed from the provider",
    )
    upstream_timeout: Optional[float] = Field(
        default=None,
        description="Timeout in seconds for upstream byte-stream requests; unset means none",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed by the CORS middleware",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache application settings.

    Notes
    -----
    - Cached with ``functools.lru_cache(maxsize=1)`` to provide a single settings instance
      across the process. Tests call ``get_settings.cache_clear()`` after changing the
      environment.

    Returns
    -------
    Settings
        The application settings instance.
    """

    return Settings()

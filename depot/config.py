"""Depot configuration management.

Configuration sources (in priority order):
1. Environment variables (DEPOT_ prefix)
2. Config file (config.yaml)
3. Defaults
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8000


class SandboxConfig(BaseModel):
    """Sandbox root configuration."""

    # Host directory exposed to clients; required at startup
    root_path: str | None = None
    # Colons are treated as drive/volume markers and rejected in paths and names
    reject_colons: bool = True
    default_folder_name: str = "New Folder"
    chunk_size: int = Field(default=64 * 1024, gt=0)


class UploadConfig(BaseModel):
    """Upload limits."""

    max_size_bytes: int = Field(default=1024 * 1024 * 1024, gt=0)  # 1 GiB


class StaticConfig(BaseModel):
    """Static asset serving (browser UI)."""

    directory: str | None = None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(populate_by_name=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_output: bool = Field(default=False, alias="json")


class Settings(BaseSettings):
    """Depot application settings."""

    model_config = SettingsConfigDict(
        env_prefix="DEPOT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    sandbox: SandboxConfig = Field(default_factory=SandboxConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    static: StaticConfig = Field(default_factory=StaticConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values passed in from the YAML file
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def _config_file_candidates() -> list[Path]:
    explicit = os.environ.get("DEPOT_CONFIG_FILE")
    candidates = [Path(explicit)] if explicit else []
    return [*candidates, Path("config.yaml"), Path("/etc/depot/config.yaml")]


def _load_config_file() -> dict:
    """Read the first Depot YAML file found, or ``{}``.

    An explicit ``DEPOT_CONFIG_FILE`` is tried before ``./config.yaml`` and
    the system-wide ``/etc/depot/config.yaml``. The file mirrors the
    settings sections (``sandbox``, ``upload``, ``logging`` ...).
    """
    for path in _config_file_candidates():
        if path.is_file():
            with open(path) as f:
                return yaml.safe_load(f) or {}
    return {}


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings: YAML values, overridden per key by ``DEPOT_*`` env vars."""
    return Settings(**_load_config_file())

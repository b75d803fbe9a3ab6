"""Configuration management for dhtshell.

Loads settings from a YAML configuration file with environment variable
overrides (``DHTSHELL_`` prefix, ``__`` between nested sections, e.g.
``DHTSHELL_SHELL__PORT=4000``). Supports .env files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/dhtshell.yaml")


class ShellConfig(BaseModel):
    host: str = Field(default="0.0.0.0", description="Remote shell bind address")
    port: int = Field(default=-1, ge=-1, le=65535, description="Remote shell port, -1 disables")
    acl: Path | None = Field(default=None, description="Access list file, None disables access control")
    disable_stdin: bool = Field(default=False, description="Run without a console session")
    interactive: bool = Field(default=True, description="Write the readiness marker on the console")
    remote_interactive: bool = Field(default=True)
    encoding: str = Field(default="utf-8")
    drain_timeout: float = Field(default=5.0, ge=0, description="Seconds to let handlers finish on halt")


class BackendConfig(BaseModel):
    node_id: str | None = Field(default=None, description="Fixed node id, random when unset")
    upnp: bool = Field(default=False, description="Enable UPnP NAT traversal")
    default_ttl: int = Field(default=10800, gt=0, description="TTL in seconds for put")


class GatewayConfig(BaseModel):
    enabled: bool = Field(default=False)
    host: str = Field(default="127.0.0.1")
    port: int | None = Field(default=None, ge=1, le=65535, description="Defaults to shell port + 1")


class LoggingConfig(BaseModel):
    level: str = Field(default="WARNING")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)


class Settings(BaseSettings):
    """Root configuration for dhtshell.

    Priority: env vars > .env file > YAML file > defaults. Command-line
    flags are applied on top by the CLI.
    """

    model_config = SettingsConfigDict(
        env_prefix="DHTSHELL_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    shell: ShellConfig = Field(default_factory=ShellConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
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
        # YAML data arrives as init kwargs and must lose to the environment
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    yaml_data: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        if not isinstance(yaml_data, dict):
            raise ValueError(f"{path}: top level of the config file must be a mapping")
        logger.info("Loaded configuration from %s", path)
    elif config_path:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    return Settings(**yaml_data)

"""Settings configuration for the turnbridge server."""

import os
from functools import lru_cache
from typing import Any

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .cors import CORSSettings
from .logging import LoggingSettings
from .server import ServerSettings
from .upstream import UpstreamSettings


__all__ = ["Settings", "ConfigurationError", "get_settings"]


# Flat variables understood by earlier deployments of the adapter
LEGACY_ENV_VARS: dict[str, tuple[str, str]] = {
    "ADAPTER_PORT": ("server", "port"),
    "UPSTREAM_HOST": ("upstream", "host"),
    "UPSTREAM_PORT": ("upstream", "port"),
}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class Settings(BaseSettings):
    """
    Configuration settings for the turnbridge server.

    Settings are loaded from environment variables and .env files. Nested
    groups use a double underscore, e.g. ``UPSTREAM__NATIVE_TOOLS=false``.
    The flat ``ADAPTER_PORT``, ``UPSTREAM_HOST`` and ``UPSTREAM_PORT``
    variables are honoured when the nested form is not set.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    server: ServerSettings = Field(
        default_factory=ServerSettings,
        description="Server configuration settings",
    )

    upstream: UpstreamSettings = Field(
        default_factory=UpstreamSettings,
        description="Upstream chat service settings",
    )

    cors: CORSSettings = Field(
        default_factory=CORSSettings,
        description="CORS configuration settings",
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration settings",
    )

    @model_validator(mode="before")
    @classmethod
    def apply_legacy_env(cls, data: Any) -> Any:
        """Fold the flat legacy variables into their nested groups."""
        if not isinstance(data, dict):
            return data
        for env_key, (group, field) in LEGACY_ENV_VARS.items():
            value = os.environ.get(env_key)
            if value is None:
                continue
            section = data.get(group)
            if section is None:
                section = {}
            elif not isinstance(section, dict):
                continue
            else:
                section = dict(section)
            section.setdefault(field, value)
            data[group] = section
        return data

    @property
    def server_url(self) -> str:
        """Get the complete server URL."""
        return f"http://{self.server.host}:{self.server.port}"

    def model_dump_safe(self) -> dict[str, Any]:
        """Dump settings as JSON-compatible data."""
        return self.model_dump(mode="json")


@lru_cache
def get_settings() -> Settings:
    """Get the cached settings instance."""
    try:
        return Settings()
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

"""Configuration module for turnbridge."""

from .cors import CORSSettings
from .logging import LoggingSettings
from .server import ServerSettings
from .settings import ConfigurationError, Settings, get_settings
from .upstream import UpstreamSettings


__all__ = [
    "CORSSettings",
    "ConfigurationError",
    "LoggingSettings",
    "ServerSettings",
    "Settings",
    "UpstreamSettings",
    "get_settings",
]

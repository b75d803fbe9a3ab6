"""Configuration management for dhtshell.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides.
"""

from dhtshell.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]

"""Configuration management for photonterm.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides, including the runner URL.
"""

from photonterm.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]

"""Configuration loading for versionmark."""

from versionmark.config.settings import Settings, load_settings, resolve_config_path

__all__ = ["Settings", "load_settings", "resolve_config_path"]

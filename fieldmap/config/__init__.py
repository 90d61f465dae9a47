"""Configuration package for mapper settings and startup validation."""

from .settings import MapperSettings, SettingsLoadError, config_load_settings

__all__ = ["MapperSettings", "SettingsLoadError", "config_load_settings"]

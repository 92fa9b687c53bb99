"""Configuration package."""

from cundina.config.settings import Settings, settings

__all__ = ["Settings", "settings"]

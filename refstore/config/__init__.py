"""Configuration module for ref-store."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]

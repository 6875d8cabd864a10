"""
ref-store Configuration Settings

This module contains all configuration constants for the ref-store server.
The storage root has no default: it must be given through the environment
or on the command line and is handed to the store explicitly.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("REF_STORE_HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("REF_STORE_PORT", "3000"))

    # Storage settings
    STORAGE_ROOT: Optional[str] = os.environ.get("REF_STORE_ROOT") or None
    STORAGE_BACKEND: str = os.environ.get("REF_STORE_STORAGE", "fs")

    # Protocol limits (wire only, the store itself enforces none)
    MAX_KEY_LENGTH: int = 256
    MAX_CONTENT_LENGTH: int = 16 * 1024 * 1024

    # Connection settings
    READ_BUFFER_SIZE: int = 4096
    CONNECTION_TIMEOUT: float = float(os.environ.get("REF_STORE_TIMEOUT", "300"))

    # Logging settings
    DEBUG: bool = os.environ.get("REF_STORE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("REF_STORE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()

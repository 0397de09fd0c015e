"""
Foundation Core - Application Infrastructure.

Provides core systems shared by the storage backend:
- BaseSystem: Abstract base for long-lived services
- ConfigManager: Configuration with persistence
- Signal: Synchronous observer notifications
- setup_logging: Loguru sink configuration

Usage:
    from src.core import ConfigManager, setup_logging

    config = ConfigManager("config.json")
    setup_logging(config.data.general.debug_mode, config.data.general.log_dir)
"""
from .base_system import BaseSystem
from .config import (
    ConfigManager,
    AppConfig,
    GeneralSettings,
    StorageSettings,
)
from .events import Signal
from .logging import setup_logging

__all__ = [
    # Core infrastructure
    "BaseSystem",

    # Configuration
    "ConfigManager",
    "AppConfig",
    "GeneralSettings",
    "StorageSettings",

    # Events
    "Signal",

    # Logging
    "setup_logging",
]

"""
BookFS - Library Storage Backend

Persists book content, reading progress and covers into a hierarchical
file store and keeps it consistent across independently synchronized
storage sources.
"""

# Core systems
from src.core.base_system import BaseSystem
from src.core.config import (
    ConfigManager,
    AppConfig,
    GeneralSettings,
    StorageSettings,
)
from src.core.events import Signal
from src.core.logging import setup_logging

__version__ = "0.1.0"

__all__ = [
    # Core
    "BaseSystem",
    "ConfigManager",
    "AppConfig",
    "GeneralSettings",
    "StorageSettings",
    "Signal",
    "setup_logging",
]

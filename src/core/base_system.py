from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from loguru import logger

if TYPE_CHECKING:
    from .config import ConfigManager

class BaseSystem(ABC):
    """
    Abstract Base Class for long-lived services (storage service, ...).
    Ensures consistent initialization and access to the ConfigManager.

    Usage:
        async with LibraryStorageService(config) as service:
            handler = service.get_handler()
    """
    def __init__(self, config: 'ConfigManager'):
        self.config = config
        self._is_ready = False

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def initialize(self):
        """
        Async initialization logic (opening stores, connecting to config).
        Subclasses call super().initialize() once they are usable.
        """
        self._is_ready = True
        logger.debug(f"{self.name} ready")

    @abstractmethod
    async def shutdown(self):
        """
        Cleanup logic (e.g. dropping cached handles).
        """
        self._is_ready = False
        logger.debug(f"{self.name} stopped")

    @property
    def is_ready(self) -> bool:
        return self._is_ready

    def ensure_ready(self):
        """Raise RuntimeError unless initialize() has completed."""
        if not self._is_ready:
            raise RuntimeError(f"{self.name} is not initialized")

    async def __aenter__(self):
        """Async context manager entry: Initialize system."""
        if not self._is_ready:
            await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit: Shutdown system."""
        if self._is_ready:
            await self.shutdown()

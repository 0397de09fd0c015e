"""
BookFS - Library Storage Service

Owns one FilesystemStorageHandler per storage source and keeps their
settings in sync with the application configuration.
"""
from pathlib import Path
from typing import Dict, Optional, Union
from loguru import logger

from src.core.base_system import BaseSystem
from src.bookfs.base_handler import BookArchiveCodec, BookDatabase
from src.bookfs.handler import FilesystemStorageHandler
from src.bookfs.permissions import UnlockResolver
from src.bookfs.progress import ProgressReporter, ProgressSink
from src.bookfs.replication import SaveBehavior
from src.bookfs.sources import (
    JsonStorageSourceStore,
    StorageSourceKind,
    StorageSourceRecord,
    StorageSourceStore,
)


class LibraryStorageService(BaseSystem):
    """
    Storage service for all configured storage sources.

    Handlers are created lazily per source name and cached, so work on
    two sources never shares a root handle or a title index.

    Usage:
        async with LibraryStorageService(config) as service:
            await service.add_local_source("library", "/books")
            cards = await service.get_handler("library").get_book_list()
    """

    def __init__(
        self,
        config,
        source_store: Optional[StorageSourceStore] = None,
        database: Optional[BookDatabase] = None,
        unlock_resolver: Optional[UnlockResolver] = None,
        archive_codec: Optional[BookArchiveCodec] = None,
        progress_sink: Optional[ProgressSink] = None,
    ):
        super().__init__(config)
        self.source_store = source_store
        self.database = database
        self.unlock_resolver = unlock_resolver
        self.archive_codec = archive_codec
        self.progress_sink = progress_sink
        self._handlers: Dict[str, FilesystemStorageHandler] = {}

    async def initialize(self) -> None:
        """Open the storage source store and follow config changes."""
        logger.info("LibraryStorageService initializing")

        if self.source_store is None:
            self.source_store = JsonStorageSourceStore(self.config.data.storage.sources_file)

        self.config.on_changed.connect(self._on_config_changed)

        await super().initialize()
        logger.info(f"LibraryStorageService ready (sources: {self.source_store.names()})")

    async def shutdown(self) -> None:
        logger.info("LibraryStorageService shutting down")
        self.config.on_changed.disconnect(self._on_config_changed)

        for handler in self._handlers.values():
            handler.clear_data()

        self._handlers.clear()
        await super().shutdown()

    # ==================== Handlers ====================

    def get_handler(
        self,
        source_name: Optional[str] = None,
        save_behavior: Optional[SaveBehavior] = None,
    ) -> FilesystemStorageHandler:
        """
        Handler for ``source_name`` (defaults to the configured source).

        Args:
            source_name: Storage source name
            save_behavior: Override of the configured save behavior
                for this lookup; later lookups without it reapply config
        """
        self.ensure_ready()

        name = source_name or self.config.data.storage.storage_source_name
        handler = self._handlers.get(name)

        if handler is None:
            handler = FilesystemStorageHandler(
                self.source_store,
                database=self.database,
                unlock_resolver=self.unlock_resolver,
                progress=ProgressReporter(self.progress_sink),
                archive_codec=self.archive_codec,
                default_source_name=name,
            )
            self._handlers[name] = handler
            logger.debug(f"Created storage handler for '{name}'")

        self._apply_settings(handler, name, save_behavior)
        return handler

    def clear_handler(self, source_name: str) -> None:
        """Drop cached state of one storage source."""
        handler = self._handlers.get(source_name)
        if handler is not None:
            handler.clear_data()

    async def add_local_source(self, name: str, path: Union[str, Path]) -> StorageSourceRecord:
        """Register a local directory as storage source ``name``."""
        self.ensure_ready()
        record = StorageSourceRecord(
            name=name,
            kind=StorageSourceKind.LOCAL_HANDLE,
            directory_path=str(Path(path).resolve()),
        )
        await self.source_store.put(record)
        self.clear_handler(name)
        return record

    # ==================== Settings ====================

    def _apply_settings(
        self,
        handler: FilesystemStorageHandler,
        name: str,
        save_behavior: Optional[SaveBehavior] = None,
    ) -> None:
        settings = self.config.data.storage

        handler.concurrency = settings.batch_concurrency
        handler.index.concurrency = settings.batch_concurrency
        handler.update_settings(
            is_for_browser=settings.is_for_browser,
            save_behavior=save_behavior or SaveBehavior(settings.save_behavior),
            cache_storage_data=settings.cache_storage_data,
            ask_for_storage_unlock=settings.ask_for_storage_unlock,
            storage_source_name=name,
        )

    def _on_config_changed(self, section: str, key: str, value) -> None:
        """Reapply storage settings to every live handler."""
        if section != "storage":
            return

        for name, handler in self._handlers.items():
            self._apply_settings(handler, name)

        logger.debug(f"Storage setting '{key}' changed to {value!r}")

"""
BookFS - Base Storage Handler

Contract shared by every storage backend (filesystem folders, browser
storage, ...) plus the settings and helpers they have in common.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Protocol, Union
from loguru import logger

from src.core.events import Signal
from src.bookfs.models import (
    ArtifactBlob,
    BookCard,
    BookData,
    BookmarkData,
    DeletionResult,
    StorageContext,
)
from src.bookfs.progress import ProgressReporter, ProgressScope
from src.bookfs.replication import CancelToken, SaveBehavior
from src.bookfs.sanitizer import sanitize


class BookDatabase(Protocol):
    """Local book database."""

    async def get_data_by_title(self, title: str) -> Optional[BookData]:
        ...

    async def put_data(self, data: BookData) -> int:
        """Store ``data`` unconditionally and return its id."""
        ...


class BookArchiveCodec(Protocol):
    """Serializes book records into a transportable archive and back."""

    async def pack(self, book: BookData) -> bytes:
        ...

    async def unpack(self, archive: ArtifactBlob) -> BookData:
        ...


class BaseStorageHandler(ABC):
    """
    Abstract storage backend.

    Per-title operations act on ``context.title``; call ``set_context``
    before replicating a book. Every public operation takes a
    ``progress_budget`` and reports exactly that much progress when it
    succeeds.
    """

    def __init__(
        self,
        progress: Optional[ProgressReporter] = None,
        archive_codec: Optional[BookArchiveCodec] = None,
    ):
        self.is_for_browser = False
        self.save_behavior = SaveBehavior.NEW_ONLY
        self.cache_storage_data = True
        self.ask_for_storage_unlock = True
        self.storage_source_name = ""
        self.context = StorageContext()
        self.progress = progress or ProgressReporter()
        self.log = logger
        self.archive_codec = archive_codec
        self.data_list_changed = Signal("DataListChanged")
        self.list_loading = Signal("ListLoading")

    def set_context(self, title: str, image_path=None) -> None:
        """Select the title subsequent per-title operations act on."""
        self.context = StorageContext(title=title, image_path=image_path)

    @property
    def sanitized_title(self) -> str:
        return sanitize(self.context.title)

    # ==================== Archive helpers ====================

    async def pack_book(self, data: BookData, scope: ProgressScope, fraction: float) -> bytes:
        if self.archive_codec is None:
            raise RuntimeError("No archive codec configured to pack book data")
        archive = await self.archive_codec.pack(data)
        scope.report(fraction)
        logger.debug(f"Packed '{data.title}' ({len(archive)} bytes)")
        return archive

    async def unpack_book(self, archive: ArtifactBlob, scope: ProgressScope, fraction: float) -> BookData:
        if self.archive_codec is None:
            raise RuntimeError("No archive codec configured to unpack book data")
        book = await self.archive_codec.unpack(archive)
        scope.report(fraction)
        return book

    # ==================== Contract ====================

    @abstractmethod
    def update_settings(
        self,
        is_for_browser: bool,
        save_behavior: SaveBehavior,
        cache_storage_data: bool,
        ask_for_storage_unlock: bool,
        storage_source_name: str,
    ) -> None:
        pass

    @abstractmethod
    async def get_book_list(self) -> List[BookCard]:
        pass

    @abstractmethod
    def clear_data(self, clear_all: bool = True) -> None:
        pass

    @abstractmethod
    async def prepare_book_for_reading(self) -> int:
        pass

    @abstractmethod
    async def update_last_read(self, book: BookData) -> None:
        pass

    @abstractmethod
    async def get_filename_for_recent_check(self, file_identifier: str, progress_budget: float = 1.0) -> Optional[str]:
        pass

    @abstractmethod
    async def is_book_present_and_up_to_date(self, reference_filename: Optional[str], progress_budget: float = 1.0) -> bool:
        pass

    @abstractmethod
    async def is_progress_present_and_up_to_date(self, reference_filename: Optional[str], progress_budget: float = 1.0) -> bool:
        pass

    @abstractmethod
    async def get_book(self, progress_budget: float = 1.0) -> Optional[Union[BookData, ArtifactBlob]]:
        pass

    @abstractmethod
    async def get_progress(self, progress_budget: float = 1.0) -> Optional[Union[BookmarkData, ArtifactBlob]]:
        pass

    @abstractmethod
    async def get_cover(self, progress_budget: float = 1.0) -> Optional[ArtifactBlob]:
        pass

    @abstractmethod
    async def save_book(
        self,
        data: Union[BookData, ArtifactBlob],
        skip_timestamp_fallback: bool = True,
        progress_budget: float = 1.0,
    ) -> int:
        pass

    @abstractmethod
    async def save_progress(self, data: Union[BookmarkData, ArtifactBlob], progress_budget: float = 1.0) -> None:
        pass

    @abstractmethod
    async def save_cover(self, data: Optional[ArtifactBlob], progress_budget: float = 1.0) -> None:
        pass

    @abstractmethod
    async def delete_book_data(self, books_to_delete: List[str], cancel_token: CancelToken) -> DeletionResult:
        pass

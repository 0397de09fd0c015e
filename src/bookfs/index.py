"""
BookFS - Directory Index

In-memory cache of a storage source: title -> directory handle,
title -> artifact file handles and title -> book card.

Entries are discovered by listing the root or created by writes. The
index is the only state that can go stale; it is cleared wholesale
when the storage source changes or an indexing batch fails.
"""
import itertools
from typing import Dict, Iterable, List, Optional
from loguru import logger

from src.bookfs.codec import (
    BOOKDATA_PREFIX,
    COVER_PREFIX,
    PROGRESS_PREFIX,
    artifact_prefix,
    parse_bookdata_name,
    parse_progress_name,
)
from src.bookfs.errors import IOFailure
from src.bookfs.handles import DirectoryHandle, FileHandle, HandleKind, StorageHandle
from src.bookfs.limiter import BatchExecutor
from src.bookfs.models import BookCard
from src.bookfs.sanitizer import desanitize, sanitize

_dummy_ids = itertools.count(1)


def next_dummy_id() -> int:
    """Process-unique id for cards that have no database record."""
    return next(_dummy_ids)


class DirectoryIndex:
    """
    Title index of one storage root.

    Attributes:
        title_to_directory: Canonical directory handle per title
        title_to_files: Artifact files per title
        title_to_card: Book card per title
        data_list_fetched: True once the whole root was listed
        listing_count: Number of full root listings performed
    """

    def __init__(self, cache_storage_data: bool = True, concurrency: int = 1):
        self.cache_storage_data = cache_storage_data
        self.concurrency = concurrency
        self.title_to_directory: Dict[str, DirectoryHandle] = {}
        self.title_to_files: Dict[str, List[FileHandle]] = {}
        self.title_to_card: Dict[str, BookCard] = {}
        self.data_list_fetched = False
        self.listing_count = 0

    # ==================== Listing ====================

    @staticmethod
    async def list_entries(directory: DirectoryHandle, include_subdirectories: bool = False) -> List[StorageHandle]:
        """
        List the files of ``directory``, or only its subdirectories when
        ``include_subdirectories`` is set. Never both.
        """
        wanted = HandleKind.DIRECTORY if include_subdirectories else HandleKind.FILE
        entries: List[StorageHandle] = []

        try:
            async for entry in directory.values():
                if entry.kind == wanted:
                    entries.append(entry)
        except OSError as e:
            raise IOFailure(f"Listing {directory.name}", e) from e

        return entries

    async def list_titles(self, root: DirectoryHandle) -> List[DirectoryHandle]:
        """List the title directories of a storage root."""
        self.listing_count += 1
        directories = await self.list_entries(root, include_subdirectories=True)
        logger.info(f"Listed {len(directories)} title directories in {root.name}")
        return directories

    # ==================== Indexing ====================

    async def index_titles(
        self,
        directories: Iterable[DirectoryHandle],
        clear_on_error: bool = True,
        record_empty: bool = False,
    ) -> None:
        """
        Index title directories one at a time.

        The first failing directory abandons the rest of the batch and
        the error propagates. With ``clear_on_error`` the whole index is
        dropped first so no half-built view is exposed. With
        ``record_empty`` an empty directory is stored with no files instead
        of being skipped.
        """
        executor = BatchExecutor(self.concurrency, name="index titles")

        try:
            await executor.run(directories, lambda directory: self._index_directory(directory, record_empty))
        except Exception as e:
            logger.error(f"Indexing aborted: {e}")
            if clear_on_error:
                self.clear()
            raise

    async def _index_directory(self, directory: DirectoryHandle, record_empty: bool = False) -> None:
        files = await self.list_entries(directory)
        title = desanitize(directory.name)

        if not files:
            if record_empty:
                self.record_files(title, directory, [])
            return

        existing = self.title_to_card.get(title)
        card = BookCard(id=existing.id if existing else next_dummy_id(), title=title)
        classifier = BatchExecutor(self.concurrency, name=f"classify {title}")

        async def classify(file: FileHandle) -> None:
            prefix = artifact_prefix(file.name)

            if prefix == BOOKDATA_PREFIX:
                metadata = parse_bookdata_name(file.name)
                card.characters = metadata.characters
                card.last_book_modified = metadata.last_book_modified
                card.last_book_open = metadata.last_book_open
            elif prefix == PROGRESS_PREFIX:
                metadata = parse_progress_name(file.name)
                card.last_bookmark_modified = metadata.last_bookmark_modified
                card.progress = metadata.progress
            elif prefix == COVER_PREFIX:
                try:
                    card.image_path = await file.get_file()
                except OSError as e:
                    raise IOFailure(f"Reading {file.name}", e) from e

        await classifier.run(files, classify)

        self.title_to_directory[title] = directory
        self.title_to_files[title] = files
        self.title_to_card[title] = card
        logger.debug(f"Indexed '{title}' ({len(files)} files)")

    async def resolve_files_for_title(self, root: DirectoryHandle, title: str) -> List[FileHandle]:
        """
        Artifact files of ``title``.

        Served from the index when caching is enabled and the title is
        indexed or the whole root was listed. Otherwise the title's
        directory is looked up and indexed on its own; a missing directory
        drops the title's directory and files but keeps its card.
        """
        use_cache = self.cache_storage_data and (self.data_list_fetched or title in self.title_to_files)

        if not use_cache:
            directory = await self._find_title_directory(root, title)

            if directory is None:
                self.forget_files(title)
            else:
                await self.index_titles([directory], clear_on_error=False, record_empty=True)

        return self.title_to_files.get(title, [])

    @staticmethod
    async def _find_title_directory(root: DirectoryHandle, title: str) -> Optional[DirectoryHandle]:
        try:
            return await root.get_directory_handle(sanitize(title), create=False)
        except (FileNotFoundError, NotADirectoryError):
            return None

    # ==================== Mutation ====================

    def record_files(self, title: str, directory: DirectoryHandle, files: List[FileHandle]) -> None:
        """Store a title's file list and its canonical directory after a write."""
        self.title_to_files[title] = files
        self.title_to_directory[title] = directory

    def forget_files(self, title: str) -> None:
        self.title_to_directory.pop(title, None)
        self.title_to_files.pop(title, None)

    def add_card(self, title: str, **fields) -> BookCard:
        """Merge ``fields`` into the card of ``title``, creating it if needed."""
        card = self.title_to_card.get(title)

        if card is None:
            card = BookCard(id=next_dummy_id(), title=title)
            self.title_to_card[title] = card

        for key, value in fields.items():
            setattr(card, key, value)

        return card

    def cards(self) -> List[BookCard]:
        return list(self.title_to_card.values())

    def purge(self, title: str) -> None:
        self.title_to_directory.pop(title, None)
        self.title_to_files.pop(title, None)
        self.title_to_card.pop(title, None)

    def clear(self, clear_all: bool = True) -> None:
        """Drop file lists, and with ``clear_all`` everything else too."""
        self.title_to_files.clear()

        if clear_all:
            self.title_to_directory.clear()
            self.title_to_card.clear()
            self.data_list_fetched = False

"""
BookFS - Filesystem Storage Handler

Storage backend for a directory-shaped storage source. Each book title
gets one directory holding at most one ``bookdata_``, ``progress_`` and
``cover_`` artifact; the artifact metadata lives in the filenames.
"""
from typing import List, NamedTuple, Optional, Union
from loguru import logger

from src.bookfs.base_handler import BaseStorageHandler, BookArchiveCodec, BookDatabase
from src.bookfs.codec import (
    BOOKDATA_PREFIX,
    COVER_PREFIX,
    PROGRESS_PREFIX,
    artifact_prefix,
    book_file_name,
    cover_file_name,
    parse_bookdata_name,
    parse_progress_name,
    progress_file_name,
)
from src.bookfs.errors import IOFailure, NoDataFound, ReplicationCancelled
from src.bookfs.handles import DirectoryHandle, FileHandle
from src.bookfs.index import DirectoryIndex
from src.bookfs.limiter import BatchExecutor
from src.bookfs.models import (
    ArtifactBlob,
    BookCard,
    BookData,
    BookmarkData,
    DeletionResult,
)
from src.bookfs.permissions import PermissionGate, UnlockResolver
from src.bookfs.progress import ProgressReporter, ProgressScope
from src.bookfs.replication import (
    CancelToken,
    SaveBehavior,
    format_replication_error,
    is_up_to_date,
    should_skip_write,
)
from src.bookfs.sanitizer import sanitize
from src.bookfs.sources import StorageSourceStore

Payload = Union[bytes, str, ArtifactBlob]


class _ExternalFile(NamedTuple):
    file: Optional[FileHandle]
    files: List[FileHandle]
    root: DirectoryHandle


class FilesystemStorageHandler(BaseStorageHandler):
    """
    Storage handler for one filesystem storage source at a time.

    Shared state (root handle and title index) belongs to the currently
    configured source and is cleared when the source changes. Use one
    instance per source for cross-source work.
    """

    def __init__(
        self,
        source_store: StorageSourceStore,
        database: Optional[BookDatabase] = None,
        unlock_resolver: Optional[UnlockResolver] = None,
        progress: Optional[ProgressReporter] = None,
        archive_codec: Optional[BookArchiveCodec] = None,
        default_source_name: str = "",
        concurrency: int = 1,
    ):
        super().__init__(progress, archive_codec)
        self.database = database
        self.default_source_name = default_source_name
        self.concurrency = concurrency
        self.gate = PermissionGate(source_store, unlock_resolver=unlock_resolver)
        self.index = DirectoryIndex(concurrency=concurrency)

    def update_settings(
        self,
        is_for_browser: bool,
        save_behavior: SaveBehavior,
        cache_storage_data: bool,
        ask_for_storage_unlock: bool,
        storage_source_name: str,
    ) -> None:
        self.is_for_browser = is_for_browser
        self.save_behavior = SaveBehavior(save_behavior)
        self.cache_storage_data = cache_storage_data
        self.ask_for_storage_unlock = ask_for_storage_unlock
        self.index.cache_storage_data = cache_storage_data
        self.gate.ask_for_storage_unlock = ask_for_storage_unlock

        new_storage_source = storage_source_name or self.default_source_name

        if new_storage_source != self.storage_source_name:
            self.log.info(f"Storage source switched: '{self.storage_source_name}' -> '{new_storage_source}'")
            self.clear_data()

        self.storage_source_name = new_storage_source
        self.gate.source_name = new_storage_source
        self.log = logger.bind(source=new_storage_source) if new_storage_source else logger

    async def ensure_root(self, allow_interactive_unlock: Optional[bool] = None) -> DirectoryHandle:
        return await self.gate.ensure_root(allow_interactive_unlock)

    # ==================== Listing ====================

    async def get_book_list(self) -> List[BookCard]:
        if not self.index.data_list_fetched:
            self.list_loading.emit(True)

            try:
                root = await self.ensure_root()
                directories = await self.index.list_titles(root)
                await self.index.index_titles(directories)
                self.index.data_list_fetched = True
            except Exception:
                # indexing failures drop the root along with the index
                self.clear_data()
                raise
            finally:
                self.list_loading.emit(False)

        return self.index.cards()

    def clear_data(self, clear_all: bool = True) -> None:
        self.index.clear(clear_all)

        if clear_all:
            self.gate.clear()

    # ==================== Reading ====================

    async def prepare_book_for_reading(self, progress_budget: float = 1.0) -> int:
        """
        Make sure the local database holds a record for the context title.

        Returns:
            Id of the record stored for reading, or 0

        Raises:
            NoDataFound: neither a local record nor a book artifact exists
        """
        if self.database is None:
            raise RuntimeError("No book database configured")

        title = self.context.title

        with self.progress.operation(progress_budget) as scope:
            book = await self.database.get_data_by_title(title)
            data = book

            if data is None or not data.element_html:
                lookup = await self._get_external_file(BOOKDATA_PREFIX, scope)
                data = (data or BookData(title=title, has_thumb=True)) if lookup.file else None

            if data is None:
                raise NoDataFound(title)

            if data.storage_source != self.storage_source_name:
                data = data.model_copy(update={"storage_source": self.storage_source_name})
                return await self.database.put_data(data)

            return book.id if book is not None and book.id else 0

    async def update_last_read(self, book: BookData, progress_budget: float = 1.0) -> None:
        """Rename the book artifact so its filename carries ``book``'s metadata."""
        with self.progress.operation(progress_budget) as scope:
            lookup = await self._get_external_file(BOOKDATA_PREFIX, scope)

            if lookup.file is None:
                return

            book_data = await self._read(lookup.file)
            filename = book_file_name(book)
            metadata = parse_bookdata_name(filename)

            await self._write_file(lookup.root, filename, book_data, lookup.files, lookup.file, scope)

            self.index.add_card(
                self.context.title,
                characters=metadata.characters,
                last_book_modified=metadata.last_book_modified,
                last_book_open=metadata.last_book_open,
            )

    async def get_filename_for_recent_check(self, file_identifier: str, progress_budget: float = 1.0) -> Optional[str]:
        with self.progress.operation(progress_budget) as scope:
            if self.save_behavior == SaveBehavior.OVERWRITE:
                return None

            lookup = await self._get_external_file(file_identifier, scope, 1.0)

            return lookup.file.name if lookup.file else None

    async def is_book_present_and_up_to_date(self, reference_filename: Optional[str], progress_budget: float = 1.0) -> bool:
        with self.progress.operation(progress_budget) as scope:
            if not reference_filename or self.save_behavior != SaveBehavior.NEW_ONLY:
                return False

            lookup = await self._get_external_file(BOOKDATA_PREFIX, scope, 1.0)
            existing = parse_bookdata_name(lookup.file.name) if lookup.file else None

            return is_up_to_date(parse_bookdata_name(reference_filename), existing, self.save_behavior)

    async def is_progress_present_and_up_to_date(self, reference_filename: Optional[str], progress_budget: float = 1.0) -> bool:
        with self.progress.operation(progress_budget) as scope:
            if not reference_filename or self.save_behavior != SaveBehavior.NEW_ONLY:
                return False

            lookup = await self._get_external_file(PROGRESS_PREFIX, scope, 1.0)
            existing = parse_progress_name(lookup.file.name) if lookup.file else None

            return is_up_to_date(parse_progress_name(reference_filename), existing, self.save_behavior)

    async def get_book(self, progress_budget: float = 1.0) -> Optional[Union[BookData, ArtifactBlob]]:
        with self.progress.operation(progress_budget) as scope:
            lookup = await self._get_external_file(BOOKDATA_PREFIX, scope, 0.4 if self.is_for_browser else 0.8)

            if lookup.file is None:
                return None

            book_file = await self._read(lookup.file)

            if self.is_for_browser:
                return await self.unpack_book(book_file, scope, 0.6)

            return book_file

    async def get_progress(self, progress_budget: float = 1.0) -> Optional[Union[BookmarkData, ArtifactBlob]]:
        with self.progress.operation(progress_budget) as scope:
            lookup = await self._get_external_file(PROGRESS_PREFIX, scope, 0.6 if self.is_for_browser else 0.8)

            if lookup.file is None:
                return None

            progress_file = await self._read(lookup.file)

            if self.is_for_browser:
                bookmark = BookmarkData.model_validate_json(progress_file.data)
                scope.report(0.4)
                return bookmark

            return progress_file

    async def get_cover(self, progress_budget: float = 1.0) -> Optional[ArtifactBlob]:
        with self.progress.operation(progress_budget) as scope:
            if isinstance(self.context.image_path, ArtifactBlob):
                return self.context.image_path

            lookup = await self._get_external_file(COVER_PREFIX, scope, 0.8)

            if lookup.file is None:
                return None

            return await self._read(lookup.file)

    # ==================== Writing ====================

    async def save_book(
        self,
        data: Union[BookData, ArtifactBlob],
        skip_timestamp_fallback: bool = True,
        progress_budget: float = 1.0,
    ) -> int:
        with self.progress.operation(progress_budget) as scope:
            is_blob = isinstance(data, ArtifactBlob)
            lookup = await self._get_external_file(BOOKDATA_PREFIX, scope, 0.2)
            fallback_name = lookup.file.name if lookup.file and not skip_timestamp_fallback else None
            filename = book_file_name(data, fallback_name)
            self._check_artifact_name(filename, BOOKDATA_PREFIX)

            metadata = parse_bookdata_name(filename)
            existing = parse_bookdata_name(lookup.file.name) if lookup.file else None

            if should_skip_write(metadata, existing, self.save_behavior):
                self.log.debug(f"Skipping book write for '{self.context.title}': {lookup.file.name} is not older")
                return 0

            if is_blob:
                book_data: Payload = data
                scope.report(0.2)
            else:
                book_data = await self.pack_book(data, scope, 0.4)

            await self._write_file(lookup.root, filename, book_data, lookup.files, lookup.file, scope, 0.6 if is_blob else 0.4)

            self.index.add_card(
                self.context.title,
                characters=metadata.characters,
                last_book_modified=metadata.last_book_modified,
                last_book_open=metadata.last_book_open,
            )

            return 0

    async def save_progress(self, data: Union[BookmarkData, ArtifactBlob], progress_budget: float = 1.0) -> None:
        with self.progress.operation(progress_budget) as scope:
            filename = progress_file_name(data)
            self._check_artifact_name(filename, PROGRESS_PREFIX)

            metadata = parse_progress_name(filename)
            lookup = await self._get_external_file(PROGRESS_PREFIX, scope)
            existing = parse_progress_name(lookup.file.name) if lookup.file else None

            if should_skip_write(metadata, existing, self.save_behavior):
                self.log.debug(f"Skipping progress write for '{self.context.title}': {lookup.file.name} is not older")
                return

            payload: Payload = data if isinstance(data, ArtifactBlob) else data.to_json()

            await self._write_file(lookup.root, filename, payload, lookup.files, lookup.file, scope, 0.6)

            self.index.add_card(
                self.context.title,
                last_bookmark_modified=metadata.last_bookmark_modified,
                progress=metadata.progress,
            )

    async def save_cover(self, data: Optional[Union[ArtifactBlob, bytes]], progress_budget: float = 1.0) -> None:
        """Write a cover unless one exists already; existing covers are never replaced."""
        with self.progress.operation(progress_budget) as scope:
            if not data:
                return

            lookup = await self._get_external_file(COVER_PREFIX, scope)

            if lookup.file is None:
                filename = await cover_file_name(data)
                await self._write_file(lookup.root, filename, data, lookup.files, None, scope, 0.6)

            if self.context.title in self.index.title_to_card:
                self.index.add_card(self.context.title, image_path=data)

    # ==================== Deletion ====================

    async def delete_book_data(self, books_to_delete: List[str], cancel_token: CancelToken) -> DeletionResult:
        """
        Delete the directories of ``books_to_delete`` one at a time.

        A failing title does not stop the others; its error is reported
        in ``DeletionResult.error`` (last failure wins). Cancellation is
        checked before each title and skips the remaining ones.
        """
        root = await self.ensure_root()
        result = DeletionResult()
        executor = BatchExecutor(self.concurrency, name="delete books")

        self.progress.reset(len(books_to_delete))

        async def delete_one(title: str) -> None:
            try:
                cancel_token.raise_if_cancelled()

                await root.remove_entry(sanitize(title), recursive=True)

                card = self.index.title_to_card.get(title)

                if card is not None and card.id:
                    result.deleted.append(card.id)

                self.index.purge(title)
                self.data_list_changed.emit(self)
                self.progress.report()
                self.log.info(f"Deleted '{title}'")
            except ReplicationCancelled:
                executor.abandon()
                self.log.info(f"Deletion cancelled before '{title}'")
            except Exception as e:
                result.error = format_replication_error(e, f"Error deleting {title}: ", self.log)

        await executor.run(books_to_delete, delete_one)

        return result

    # ==================== Internals ====================

    async def _get_external_file(self, file_identifier: str, scope: ProgressScope, fraction: float = 0.4) -> _ExternalFile:
        per_step = fraction / 2
        root = await self.ensure_root()

        scope.report(per_step)

        files = await self.index.resolve_files_for_title(root, self.context.title)
        file = next((entry for entry in files if entry.name.startswith(file_identifier)), None)

        scope.report(per_step)

        return _ExternalFile(file, files, root)

    async def _write_file(
        self,
        root: DirectoryHandle,
        filename: str,
        data: Payload,
        files: List[FileHandle],
        file: Optional[FileHandle],
        scope: ProgressScope,
        fraction: float = 0.4,
    ) -> None:
        """
        Write ``data`` as ``filename`` into the context title's directory.

        ``file`` is the same-prefix artifact being superseded; it is
        removed unless the host reports it is the file just written.
        """
        per_step = fraction / 2
        title = self.context.title
        payload = data.data if isinstance(data, ArtifactBlob) else data

        try:
            directory = self.index.title_to_directory.get(title) or await root.get_directory_handle(
                self.sanitized_title, create=True
            )
            saved_file = await directory.get_file_handle(filename, create=True)
            writer = await saved_file.create_writable()

            try:
                await writer.write(payload)
            except BaseException:
                await writer.abort()
                raise

            await writer.close()
        except OSError as e:
            raise IOFailure(f"Writing {filename}", e) from e

        scope.report(per_step)

        if file is not None:
            if not await saved_file.is_same_entry(file):
                try:
                    await directory.remove_entry(file.name)
                except OSError as e:
                    raise IOFailure(f"Removing {file.name}", e) from e
                self.log.debug(f"Replaced {file.name} with {filename} for '{title}'")

            title_files = [entry for entry in files if entry.name != file.name]
            title_files.append(saved_file)
        else:
            title_files = [*files, saved_file]

        self.index.record_files(title, directory, title_files)

        scope.report(per_step)

    @staticmethod
    async def _read(file: FileHandle) -> ArtifactBlob:
        try:
            return await file.get_file()
        except OSError as e:
            raise IOFailure(f"Reading {file.name}", e) from e

    @staticmethod
    def _check_artifact_name(filename: str, prefix: str) -> None:
        if artifact_prefix(filename) != prefix:
            raise ValueError(f"'{filename}' is not a {prefix.rstrip('_')} artifact name")

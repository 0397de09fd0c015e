import json
import pytest
from typing import Dict, Optional

from src.bookfs.handler import FilesystemStorageHandler
from src.bookfs.models import ArtifactBlob, BookData
from src.bookfs.progress import ProgressCollector, ProgressReporter
from src.bookfs.replication import SaveBehavior
from src.bookfs.sources import StorageSourceRecord, StorageSourceStore


class FakeArchiveCodec:
    """Packs book records as JSON; stands in for the real archive format."""

    def __init__(self):
        self.packed = []

    async def pack(self, book: BookData) -> bytes:
        self.packed.append(book.title)
        return book.model_dump_json(by_alias=True, exclude={"blobs", "cover_image"}).encode("utf-8")

    async def unpack(self, archive: ArtifactBlob) -> BookData:
        return BookData.model_validate(json.loads(archive.data))


class FakeDatabase:
    def __init__(self):
        self.records: Dict[str, BookData] = {}
        self.next_id = 100

    async def get_data_by_title(self, title: str) -> Optional[BookData]:
        return self.records.get(title)

    async def put_data(self, data: BookData) -> int:
        stored = data if data.id else data.model_copy(update={"id": self.next_id})
        self.next_id += 1
        self.records[data.title] = stored
        return stored.id


@pytest.fixture
def library_root(tmp_path):
    root = tmp_path / "library"
    root.mkdir()
    return root


@pytest.fixture
def source_store(library_root):
    return StorageSourceStore([
        StorageSourceRecord(name="local", directory_path=str(library_root)),
    ])


@pytest.fixture
def progress_sink():
    return ProgressCollector()


@pytest.fixture
def database():
    return FakeDatabase()


@pytest.fixture
def archive_codec():
    return FakeArchiveCodec()


@pytest.fixture
def make_handler(source_store, progress_sink, database, archive_codec):
    def factory(
        save_behavior: SaveBehavior = SaveBehavior.NEW_ONLY,
        cache_storage_data: bool = True,
        is_for_browser: bool = False,
        source_name: str = "local",
    ) -> FilesystemStorageHandler:
        handler = FilesystemStorageHandler(
            source_store,
            database=database,
            progress=ProgressReporter(progress_sink),
            archive_codec=archive_codec,
        )
        handler.update_settings(
            is_for_browser=is_for_browser,
            save_behavior=save_behavior,
            cache_storage_data=cache_storage_data,
            ask_for_storage_unlock=True,
            storage_source_name=source_name,
        )
        return handler

    return factory


@pytest.fixture
def handler(make_handler):
    return make_handler()

import json
import pytest

from src.bookfs.handles import LocalDirectoryHandle
from src.bookfs.sources import (
    JsonStorageSourceStore,
    StorageSourceKind,
    StorageSourceRecord,
    StorageSourceStore,
)


@pytest.mark.asyncio
async def test_in_memory_store():
    store = StorageSourceStore()

    await store.put(StorageSourceRecord(name="nas", directory_path="/mnt/nas"))

    assert (await store.get("nas")).directory_path == "/mnt/nas"
    assert await store.get("other") is None
    assert store.names() == ["nas"]
    assert await store.delete("nas")
    assert not await store.delete("nas")


@pytest.mark.asyncio
async def test_json_store_persists_records(tmp_path):
    filepath = tmp_path / "config" / "sources.json"
    store = JsonStorageSourceStore(str(filepath))

    await store.put(StorageSourceRecord(name="local", directory_path=str(tmp_path)))
    await store.put(StorageSourceRecord(name="blob", kind=StorageSourceKind.BLOB, data=b"\x00\x01"))

    reloaded = JsonStorageSourceStore(str(filepath))

    assert reloaded.names() == ["blob", "local"]
    assert (await reloaded.get("local")).directory_path == str(tmp_path)
    blob = await reloaded.get("blob")
    assert blob.kind == StorageSourceKind.BLOB
    assert blob.data == b"\x00\x01"


@pytest.mark.asyncio
async def test_runtime_handles_are_not_persisted(tmp_path):
    filepath = tmp_path / "sources.json"
    store = JsonStorageSourceStore(str(filepath))

    await store.put(StorageSourceRecord(name="mounted", directory_handle=LocalDirectoryHandle(tmp_path)))

    saved = json.loads(filepath.read_text())
    assert "directory_handle" not in saved["sources"][0]


def test_json_store_ignores_corrupt_file(tmp_path):
    filepath = tmp_path / "sources.json"
    filepath.write_text("{not json")

    assert JsonStorageSourceStore(str(filepath)).names() == []


def test_resolve_handle(tmp_path):
    supplied = LocalDirectoryHandle(tmp_path)

    assert StorageSourceRecord(name="a", directory_handle=supplied).resolve_handle() is supplied
    assert StorageSourceRecord(name="b", directory_path=str(tmp_path)).resolve_handle().path == tmp_path
    assert StorageSourceRecord(name="c").resolve_handle() is None

"""
BookFS - Storage Sources

Named storage source configurations and the store that persists them.
"""
import asyncio
import os
from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from loguru import logger

from src.bookfs.handles import DirectoryHandle, open_directory


class StorageSourceKind(str, Enum):
    """What a storage source persists as its capability."""
    LOCAL_HANDLE = "local_handle"
    BLOB = "blob"


class StorageSourceRecord(BaseModel):
    """
    A named storage source.

    Attributes:
        name: Unique source name
        kind: LOCAL_HANDLE for directory sources, BLOB for opaque byte data
        directory_path: Persisted location of the root directory
        data: Opaque bytes for BLOB sources
        directory_handle: Handle supplied at runtime instead of a path
    """
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    name: str
    kind: StorageSourceKind = StorageSourceKind.LOCAL_HANDLE
    directory_path: Optional[str] = None
    data: Optional[bytes] = None
    directory_handle: Optional[DirectoryHandle] = Field(default=None, exclude=True)

    def resolve_handle(self) -> Optional[DirectoryHandle]:
        if self.directory_handle is not None:
            return self.directory_handle
        return open_directory(self.directory_path)


class _StorageSourceFile(BaseModel):
    sources: List[StorageSourceRecord] = Field(default_factory=list)


class StorageSourceStore:
    """
    In-memory keyed store of storage sources.

    Subclasses add persistence by overriding ``_persist``.
    """

    def __init__(self, records: Optional[List[StorageSourceRecord]] = None):
        self._records: Dict[str, StorageSourceRecord] = {}
        for record in records or []:
            self._records[record.name] = record

    async def get(self, name: str) -> Optional[StorageSourceRecord]:
        return self._records.get(name)

    async def put(self, record: StorageSourceRecord) -> None:
        self._records[record.name] = record
        await self._persist()
        logger.info(f"Storage source saved: {record.name} ({record.kind.value})")

    async def delete(self, name: str) -> bool:
        if self._records.pop(name, None) is None:
            return False
        await self._persist()
        logger.info(f"Storage source removed: {name}")
        return True

    def names(self) -> List[str]:
        return sorted(self._records)

    async def _persist(self) -> None:
        pass


class JsonStorageSourceStore(StorageSourceStore):
    """Storage sources persisted in a JSON file."""

    def __init__(self, filepath: str = "storage_sources.json"):
        super().__init__()
        self.filepath = filepath
        self._load()

    def _load(self):
        if not os.path.isfile(self.filepath):
            return
        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                parsed = _StorageSourceFile.model_validate_json(f.read())
        except (OSError, ValidationError) as e:
            logger.error(f"Failed to load storage sources from {self.filepath}: {e}")
            return
        self._records = {record.name: record for record in parsed.sources}
        logger.debug(f"Loaded {len(self._records)} storage sources from {self.filepath}")

    async def _persist(self) -> None:
        payload = _StorageSourceFile(sources=list(self._records.values())).model_dump_json(indent=4)
        await asyncio.to_thread(self._write, payload)

    def _write(self, payload: str) -> None:
        dirname = os.path.dirname(self.filepath)
        if dirname:
            os.makedirs(dirname, exist_ok=True)
        with open(self.filepath, "w", encoding="utf-8") as f:
            f.write(payload)

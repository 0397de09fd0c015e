"""
BookFS - Storage Handles

Capability objects for a directory-shaped storage source.

A storage source is accessed only through handles: a directory handle
grants enumeration, child lookup/creation and removal, a file handle
grants reading and committing writes. Handles carry no identity
semantics of their own; use ``is_same_entry`` to compare them.
"""
import asyncio
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List, Optional, Union

from src.bookfs.models import ArtifactBlob


class PermissionState(str, Enum):
    """Result of a permission query or request."""
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


class HandleKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class StorageHandle(ABC):
    """Common interface of file and directory handles."""

    kind: HandleKind

    @property
    @abstractmethod
    def name(self) -> str:
        """Entry name (last path component)."""
        pass

    @abstractmethod
    async def is_same_entry(self, other: "StorageHandle") -> bool:
        """True when both handles point at the same underlying entry."""
        pass


class FileWriter(ABC):
    """Write sink for a file. Nothing is visible until ``close`` commits."""

    @abstractmethod
    async def write(self, data: Union[bytes, str]) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def abort(self) -> None:
        pass


class FileHandle(StorageHandle):
    kind = HandleKind.FILE

    @abstractmethod
    async def get_file(self) -> ArtifactBlob:
        """Read the whole file."""
        pass

    @abstractmethod
    async def create_writable(self) -> FileWriter:
        pass


class DirectoryHandle(StorageHandle):
    kind = HandleKind.DIRECTORY

    @abstractmethod
    async def query_permission(self, mode: str = "readwrite") -> PermissionState:
        pass

    @abstractmethod
    async def request_permission(self, mode: str = "readwrite") -> PermissionState:
        pass

    @abstractmethod
    def values(self) -> AsyncIterator[StorageHandle]:
        """Enumerate child entries. Order is not guaranteed."""
        pass

    @abstractmethod
    async def get_directory_handle(self, name: str, create: bool = False) -> "DirectoryHandle":
        """
        Get a child directory.

        Raises:
            FileNotFoundError: child is missing and ``create`` is False
            NotADirectoryError: child exists but is a file
        """
        pass

    @abstractmethod
    async def get_file_handle(self, name: str, create: bool = False) -> FileHandle:
        """
        Get a child file.

        With ``create`` a missing file is allowed; it appears on disk only
        when a writer created from the handle commits.
        """
        pass

    @abstractmethod
    async def remove_entry(self, name: str, recursive: bool = False) -> None:
        pass


# ==================== Local disk implementation ====================

def _child_path(parent: Path, name: str) -> Path:
    if not name or name in (".", "..") or "/" in name or os.sep in name:
        raise ValueError(f"Invalid entry name: {name!r}")
    return parent / name


class LocalFileWriter(FileWriter):
    """
    Streams into a temporary sibling file and renames it over the
    target on close.
    """

    def __init__(self, target: Path):
        self._target = target
        self._temp = tempfile.NamedTemporaryFile(
            mode="wb", dir=target.parent, prefix=f".{target.name}.", suffix=".part", delete=False
        )
        self._closed = False

    async def write(self, data: Union[bytes, str]) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        await asyncio.to_thread(self._temp.write, data)

    async def close(self) -> None:
        if self._closed:
            return
        await asyncio.to_thread(self._commit)
        self._closed = True

    async def abort(self) -> None:
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self._discard)

    def _commit(self) -> None:
        self._temp.flush()
        os.fsync(self._temp.fileno())
        self._temp.close()
        os.replace(self._temp.name, self._target)

    def _discard(self) -> None:
        self._temp.close()
        Path(self._temp.name).unlink(missing_ok=True)


class LocalFileHandle(FileHandle):
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return self.path.name

    async def get_file(self) -> ArtifactBlob:
        data = await asyncio.to_thread(self.path.read_bytes)
        return ArtifactBlob(name=self.name, data=data)

    async def create_writable(self) -> FileWriter:
        return await asyncio.to_thread(LocalFileWriter, self.path)

    async def is_same_entry(self, other: StorageHandle) -> bool:
        if not isinstance(other, LocalFileHandle):
            return False
        return await asyncio.to_thread(_same_path, self.path, other.path)

    def __repr__(self) -> str:
        return f"LocalFileHandle({str(self.path)!r})"


class LocalDirectoryHandle(DirectoryHandle):
    """
    Directory handle backed by a local path.

    Local disks have no consent dialog, so requesting a permission
    re-checks access rights and returns the same answer as a query.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return self.path.name

    async def query_permission(self, mode: str = "readwrite") -> PermissionState:
        return await asyncio.to_thread(self._check_access, mode)

    async def request_permission(self, mode: str = "readwrite") -> PermissionState:
        return await asyncio.to_thread(self._check_access, mode)

    async def values(self) -> AsyncIterator[StorageHandle]:
        entries = await asyncio.to_thread(self._scan)
        for entry in entries:
            yield entry

    async def get_directory_handle(self, name: str, create: bool = False) -> DirectoryHandle:
        path = _child_path(self.path, name)
        await asyncio.to_thread(self._ensure_directory, path, create)
        return LocalDirectoryHandle(path)

    async def get_file_handle(self, name: str, create: bool = False) -> FileHandle:
        path = _child_path(self.path, name)
        await asyncio.to_thread(self._ensure_file, path, create)
        return LocalFileHandle(path)

    async def remove_entry(self, name: str, recursive: bool = False) -> None:
        path = _child_path(self.path, name)
        await asyncio.to_thread(self._remove, path, recursive)

    async def is_same_entry(self, other: StorageHandle) -> bool:
        if not isinstance(other, LocalDirectoryHandle):
            return False
        return await asyncio.to_thread(_same_path, self.path, other.path)

    def _check_access(self, mode: str) -> PermissionState:
        flags = os.R_OK | os.X_OK
        if mode == "readwrite":
            flags |= os.W_OK
        if self.path.is_dir() and os.access(self.path, flags):
            return PermissionState.GRANTED
        return PermissionState.DENIED

    def _scan(self) -> List[StorageHandle]:
        entries: List[StorageHandle] = []
        with os.scandir(self.path) as iterator:
            for entry in iterator:
                if entry.name.startswith(".") and entry.name.endswith(".part"):
                    continue  # uncommitted LocalFileWriter output
                if entry.is_dir(follow_symlinks=False):
                    entries.append(LocalDirectoryHandle(entry.path))
                elif entry.is_file(follow_symlinks=False):
                    entries.append(LocalFileHandle(entry.path))
        return entries

    @staticmethod
    def _ensure_directory(path: Path, create: bool) -> None:
        if path.is_dir():
            return
        if path.exists():
            raise NotADirectoryError(f"Not a directory: {path}")
        if not create:
            raise FileNotFoundError(f"Directory not found: {path}")
        path.mkdir()

    @staticmethod
    def _ensure_file(path: Path, create: bool) -> None:
        if path.is_file():
            return
        if path.exists():
            raise IsADirectoryError(f"Not a file: {path}")
        if not create:
            raise FileNotFoundError(f"File not found: {path}")
        # created by the first committed writer

    @staticmethod
    def _remove(path: Path, recursive: bool) -> None:
        if path.is_dir() and not path.is_symlink():
            if recursive:
                shutil.rmtree(path)
            else:
                path.rmdir()
        else:
            path.unlink()

    def __repr__(self) -> str:
        return f"LocalDirectoryHandle({str(self.path)!r})"


def _same_path(first: Path, second: Path) -> bool:
    try:
        return os.path.samefile(first, second)
    except OSError:
        return first.resolve() == second.resolve()


def open_directory(path: Optional[Union[str, Path]]) -> Optional[LocalDirectoryHandle]:
    """Handle for a persisted directory path, or None when no path is stored."""
    return LocalDirectoryHandle(path) if path else None

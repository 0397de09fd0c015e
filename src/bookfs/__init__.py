"""
BookFS - Library Storage Backend

Persists book content, reading progress and cover images into a
directory-per-title file store and keeps it consistent when the same
library is replicated from several storage sources.

Features:
- Artifact metadata encoded in filenames (no side-car index)
- Freshness-based replication policy (overwrite / new only)
- Lazily built title index with wholesale invalidation
- Permission gate with one-shot interactive unlock
- Serialized batches with partial-failure deletion
- Progress budgets per operation

Note: Uses lazy imports to keep ``src.bookfs.codec`` importable without
the handler stack.
Direct imports: from src.bookfs.handler import FilesystemStorageHandler
"""

__version__ = "0.1.0"

_lazy_imports = {
    # Models
    "ArtifactBlob": "src.bookfs.models",
    "BookCard": "src.bookfs.models",
    "BookData": "src.bookfs.models",
    "BookmarkData": "src.bookfs.models",
    "BookMetadata": "src.bookfs.models",
    "ProgressMetadata": "src.bookfs.models",
    "DeletionResult": "src.bookfs.models",

    # Policy
    "SaveBehavior": "src.bookfs.replication",
    "CancelToken": "src.bookfs.replication",

    # Handles and sources
    "LocalDirectoryHandle": "src.bookfs.handles",
    "StorageSourceRecord": "src.bookfs.sources",
    "JsonStorageSourceStore": "src.bookfs.sources",

    # Services
    "FilesystemStorageHandler": "src.bookfs.handler",
    "LibraryStorageService": "src.bookfs.service",
}


def __getattr__(name):
    if name in _lazy_imports:
        import importlib
        module = importlib.import_module(_lazy_imports[name])
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = list(_lazy_imports)

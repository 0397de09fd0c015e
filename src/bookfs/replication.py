"""
BookFS - Replication Policy

Decides whether an artifact in a storage source is kept or replaced.

The same comparison backs the read path (``is_up_to_date``) and the
write path (``should_skip_write``) so two sources replicating into each
other converge instead of ping-ponging.
"""
from enum import Enum
from typing import Optional, Union
from loguru import logger

from src.bookfs.errors import ReplicationCancelled
from src.bookfs.models import BookMetadata, ProgressMetadata

ArtifactMetadata = Union[BookMetadata, ProgressMetadata]


class SaveBehavior(str, Enum):
    """
    How aggressively a handler replaces existing artifacts.

    OVERWRITE: every write proceeds, nothing counts as up to date
    NEW_ONLY: writes and reads defer to the freshness comparison
    """
    OVERWRITE = "overwrite"
    NEW_ONLY = "newOnly"


def is_not_newer(candidate: ArtifactMetadata, existing: ArtifactMetadata) -> bool:
    """
    True when ``existing`` is at least as fresh as ``candidate``.

    Book artifacts compare both modification and last-open timestamps,
    progress artifacts compare the bookmark timestamp. A zero primary
    timestamp on either side never counts as fresh.
    """
    if isinstance(candidate, BookMetadata) and isinstance(existing, BookMetadata):
        return bool(
            existing.last_book_modified
            and candidate.last_book_modified
            and existing.last_book_modified >= candidate.last_book_modified
            and existing.last_book_open >= candidate.last_book_open
        )

    if isinstance(candidate, ProgressMetadata) and isinstance(existing, ProgressMetadata):
        return bool(
            existing.last_bookmark_modified
            and candidate.last_bookmark_modified
            and existing.last_bookmark_modified >= candidate.last_bookmark_modified
        )

    raise TypeError(
        f"Cannot compare {type(candidate).__name__} with {type(existing).__name__}"
    )


def should_skip_write(
    candidate: ArtifactMetadata,
    existing: Optional[ArtifactMetadata],
    behavior: SaveBehavior,
) -> bool:
    """Whether writing ``candidate`` over ``existing`` is pointless."""
    if behavior != SaveBehavior.NEW_ONLY or existing is None:
        return False
    return is_not_newer(candidate, existing)


def is_up_to_date(
    reference: ArtifactMetadata,
    existing: Optional[ArtifactMetadata],
    behavior: SaveBehavior,
) -> bool:
    """Whether ``existing`` already satisfies a reader holding ``reference``."""
    if behavior != SaveBehavior.NEW_ONLY or existing is None:
        return False
    return is_not_newer(reference, existing)


class CancelToken:
    """
    Cooperative cancellation flag.

    Batches check it before starting each item; work already in
    flight is never interrupted.
    """

    def __init__(self):
        self._cancelled = False
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        self._cancelled = True
        self.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ReplicationCancelled()


def format_replication_error(error: BaseException, prefix: str = "", log=logger) -> str:
    """Log a per-item replication failure and return its user-facing message."""
    message = f"{prefix}{error}"
    log.error(message)
    return message

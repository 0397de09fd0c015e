"""
BookFS - Metadata Codec

Encodes artifact metadata into filenames and decodes it back.
Filenames are the only place metadata is persisted, so the grammar
must stay readable by every client of a library:

    bookdata_<characters>-<lastBookModified>-<lastBookOpen>
    progress_<lastBookmarkModified>-<progressPercent>
    cover_<extension>
"""
import asyncio
import io
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional, Union
from loguru import logger

from src.bookfs.models import (
    ArtifactBlob,
    BookData,
    BookMetadata,
    BookmarkData,
    ProgressMetadata,
)

BOOKDATA_PREFIX = "bookdata_"
PROGRESS_PREFIX = "progress_"
COVER_PREFIX = "cover_"
ARTIFACT_PREFIXES = (BOOKDATA_PREFIX, PROGRESS_PREFIX, COVER_PREFIX)

FIELD_SEPARATOR = "-"
DEFAULT_COVER_EXTENSION = "jpeg"

# Written by older clients, ignored when parsing
_TOLERATED_SUFFIXES = (".zip", ".json")


def artifact_prefix(filename: str) -> Optional[str]:
    """Return the reserved prefix ``filename`` starts with, if any."""
    for prefix in ARTIFACT_PREFIXES:
        if filename.startswith(prefix):
            return prefix
    return None


# ==================== Book data ====================

def format_bookdata_name(metadata: BookMetadata) -> str:
    return (
        f"{BOOKDATA_PREFIX}{metadata.characters}{FIELD_SEPARATOR}"
        f"{metadata.last_book_modified}{FIELD_SEPARATOR}{metadata.last_book_open}"
    )


def parse_bookdata_name(filename: str) -> BookMetadata:
    """
    Decode book metadata from a ``bookdata_`` filename.

    Missing or malformed fields decode as 0 so a stray file never
    aborts indexing of a whole library.
    """
    characters, modified, opened = _fields(filename, BOOKDATA_PREFIX, 3)
    return BookMetadata(
        characters=_to_int(characters, filename),
        last_book_modified=_to_int(modified, filename),
        last_book_open=_to_int(opened, filename),
    )


# ==================== Progress ====================

def format_progress_name(metadata: ProgressMetadata) -> str:
    return (
        f"{PROGRESS_PREFIX}{metadata.last_bookmark_modified}{FIELD_SEPARATOR}"
        f"{_format_percent(metadata.progress)}"
    )


def parse_progress_name(filename: str) -> ProgressMetadata:
    modified, percent = _fields(filename, PROGRESS_PREFIX, 2)
    return ProgressMetadata(
        last_bookmark_modified=_to_int(modified, filename),
        progress=_parse_percent(percent, filename),
    )


# ==================== Cover ====================

def format_cover_name(extension: str) -> str:
    return f"{COVER_PREFIX}{extension.lstrip('.').lower()}"


def parse_cover_extension(filename: str) -> str:
    return filename[len(COVER_PREFIX):] if filename.startswith(COVER_PREFIX) else ""


# ==================== Filenames for payloads ====================

def book_file_name(data: Union[BookData, ArtifactBlob], fallback_name: Optional[str] = None) -> str:
    """
    Filename under which ``data`` is stored.

    Blobs keep their own name. For a book record, fields that are
    zero are taken from ``fallback_name`` when one is given.
    """
    if isinstance(data, ArtifactBlob):
        return data.name

    fallback = parse_bookdata_name(fallback_name) if fallback_name else BookMetadata()

    return format_bookdata_name(BookMetadata(
        characters=data.characters or fallback.characters,
        last_book_modified=data.last_book_modified or fallback.last_book_modified,
        last_book_open=data.last_book_open or fallback.last_book_open,
    ))


def progress_file_name(data: Union[BookmarkData, ArtifactBlob]) -> str:
    if isinstance(data, ArtifactBlob):
        return data.name

    return format_progress_name(ProgressMetadata(
        last_bookmark_modified=data.last_bookmark_modified,
        progress=data.progress,
    ))


async def cover_file_name(data: Union[ArtifactBlob, bytes]) -> str:
    """
    Filename for a cover image.

    The format is sniffed with Pillow; when the bytes are not a known
    image the blob's own suffix is used, then ``jpeg``.
    """
    payload = data.data if isinstance(data, ArtifactBlob) else data
    extension = await asyncio.to_thread(_sniff_image_format, payload)

    if not extension and isinstance(data, ArtifactBlob):
        extension = Path(data.name).suffix.lstrip(".").lower()

    return format_cover_name(extension or DEFAULT_COVER_EXTENSION)


def _sniff_image_format(payload: bytes) -> Optional[str]:
    from PIL import Image, UnidentifiedImageError

    try:
        with Image.open(io.BytesIO(payload)) as img:
            return (img.format or "").lower() or None
    except (UnidentifiedImageError, OSError):
        return None


# ==================== Helpers ====================

def _fields(filename: str, prefix: str, count: int) -> List[str]:
    body = filename[len(prefix):] if filename.startswith(prefix) else ""

    for suffix in _TOLERATED_SUFFIXES:
        if body.endswith(suffix):
            body = body[:-len(suffix)]
            break

    parts = body.split(FIELD_SEPARATOR) if body else []
    return (parts + [""] * count)[:count]


def _to_int(text: str, filename: str) -> int:
    try:
        return max(0, int(text))
    except ValueError:
        logger.debug(f"Unparseable metadata field '{text}' in {filename}")
        return 0


def _format_percent(progress: float) -> str:
    # decimal keeps parse(format(x)) == x for every float
    value = (Decimal(repr(float(progress))) * 100).normalize()
    return format(value, "f")


def _parse_percent(text: str, filename: str) -> float:
    try:
        value = float(Decimal(text) / 100)
    except (InvalidOperation, ValueError):
        logger.debug(f"Unparseable progress '{text}' in {filename}")
        return 0.0
    return min(1.0, max(0.0, value))

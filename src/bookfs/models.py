"""
BookFS - Data Models

Pydantic models for artifact metadata, book records and the in-memory
book cards built from a storage source.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BookMetadata(BaseModel):
    """Metadata carried by a ``bookdata_`` filename."""
    model_config = ConfigDict(frozen=True)

    characters: int = Field(default=0, ge=0)
    last_book_modified: int = Field(default=0, ge=0)
    last_book_open: int = Field(default=0, ge=0)


class ProgressMetadata(BaseModel):
    """Metadata carried by a ``progress_`` filename."""
    model_config = ConfigDict(frozen=True)

    last_bookmark_modified: int = Field(default=0, ge=0)
    progress: float = Field(default=0.0, ge=0.0, le=1.0)


class ArtifactBlob(BaseModel):
    """
    An already serialized artifact: a filename plus its bytes.

    Reads from a storage source return blobs, and blobs handed to a
    save operation are written verbatim under their own name.
    """
    name: str
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)


class BookData(BaseModel):
    """
    Book record as stored in the local database.

    Field names are camelCased on export so records stay readable
    by other clients of the same library.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[int] = None
    title: str
    style_sheet: str = ""
    element_html: str = ""
    blobs: Dict[str, bytes] = Field(default_factory=dict)
    cover_image: Any = ""
    has_thumb: bool = True
    characters: int = Field(default=0, ge=0)
    sections: List[Dict[str, Any]] = Field(default_factory=list)
    last_book_modified: int = Field(default=0, ge=0)
    last_book_open: int = Field(default=0, ge=0)
    storage_source: Optional[str] = None


class BookmarkData(BaseModel):
    """Reading progress record, persisted as JSON inside a ``progress_`` file."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    data_id: int = 0
    title: str = ""
    explored_char_count: int = Field(default=0, ge=0)
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    last_bookmark_modified: int = Field(default=0, ge=0)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class BookCard(BaseModel):
    """
    In-memory summary of one title, rebuilt from its artifact files.

    Attributes:
        id: Dummy identifier assigned when the card is built
        title: Desanitized book title
        image_path: Cover blob, or empty string when no cover is known
        is_placeholder: True for cards that have no artifacts yet
    """
    id: int = 0
    title: str
    image_path: Any = ""
    characters: int = 0
    last_book_modified: int = 0
    last_book_open: int = 0
    progress: float = 0.0
    last_bookmark_modified: int = 0
    is_placeholder: bool = False


class StorageContext(BaseModel):
    """Title a handler currently operates on, plus an optional in-memory cover."""
    title: str = ""
    image_path: Any = None


class DeletionResult(BaseModel):
    """
    Outcome of a batch deletion.

    ``error`` is non-empty when any title failed, regardless of how many
    ids appear in ``deleted``.
    """
    error: str = ""
    deleted: List[int] = Field(default_factory=list)

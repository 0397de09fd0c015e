"""
BookFS - Errors

Exception hierarchy for the storage backend.
"""
from typing import Optional


class BookStorageError(Exception):
    """Base exception for all storage backend errors."""

    def __init__(self, message: str, suggestion: Optional[str] = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class PermissionDenied(BookStorageError):
    """Neither a permission query nor a request granted access."""

    def __init__(self, message: str = "No permissions granted to access filesystem"):
        super().__init__(message, "Grant read/write access to the library folder")


class SourceNotFound(BookStorageError):
    """No storage source is configured under the requested name."""

    def __init__(self, source_name: str):
        self.source_name = source_name
        super().__init__(f"No storage source with name {source_name} found")


class WrongHandleKind(BookStorageError):
    """The persisted capability is not a directory handle."""

    def __init__(self, source_name: str):
        self.source_name = source_name
        super().__init__("Wrong filesystem handle type")


class HandleMissing(BookStorageError):
    """The storage source has no persisted directory handle."""

    def __init__(self, source_name: str):
        self.source_name = source_name
        super().__init__("Filesystem handle not found")


class InteractiveUnlockRequired(BookStorageError):
    """The host needs a fresh user activation before the handle can be used."""

    def __init__(self, message: str = "User activation is required to request permissions"):
        super().__init__(message)


class NoDataFound(BookStorageError):
    """Neither a local record nor an external artifact exists."""

    def __init__(self, title: str):
        self.title = title
        super().__init__("No local or external book data found")


class IOFailure(BookStorageError):
    """Wraps an error raised by the host filesystem."""

    def __init__(self, operation: str, cause: BaseException):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class ReplicationCancelled(BookStorageError):
    """A cancel token was triggered before the next item started."""

    def __init__(self):
        super().__init__("Replication was cancelled")

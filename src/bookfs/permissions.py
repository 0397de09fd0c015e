"""
BookFS - Permission Gate

Acquires and caches the root directory handle of a storage source.

Acquisition states:
    Uncached -> Resolving -> PermissionCheck -> Granted
                                             -> NeedsGesture -> (unlock) -> Resolving (no unlock)
Any other failure surfaces to the caller.
"""
import re
from typing import Any, Awaitable, Callable, Optional
from pydantic import BaseModel
from loguru import logger

from src.bookfs.errors import (
    HandleMissing,
    InteractiveUnlockRequired,
    PermissionDenied,
    SourceNotFound,
    WrongHandleKind,
)
from src.bookfs.handles import DirectoryHandle, PermissionState
from src.bookfs.sources import StorageSourceKind, StorageSourceStore

ACTIVATION_REQUIRED = re.compile(r"activation is required", re.IGNORECASE)


class StorageUnlockRequest(BaseModel):
    """What the interactive unlock prompt presents to the user."""
    description: str
    action: str
    requires_secret: bool = False


UnlockResolver = Callable[[StorageUnlockRequest], Awaitable[Any]]


async def verify_permission(handle: DirectoryHandle, mode: str = "readwrite") -> None:
    """
    Ensure ``handle`` may be used, requesting access if a query says no.

    Raises:
        PermissionDenied: neither the query nor the request granted access
    """
    if await handle.query_permission(mode) == PermissionState.GRANTED:
        return

    if await handle.request_permission(mode) == PermissionState.GRANTED:
        return

    raise PermissionDenied()


def needs_user_activation(error: BaseException) -> bool:
    """True when the host refuses access until the user performs a gesture."""
    return isinstance(error, InteractiveUnlockRequired) or bool(ACTIVATION_REQUIRED.search(str(error)))


class PermissionGate:
    """
    Owns the root handle of one storage source.

    The interactive unlock is awaited at most once per ``ensure_root``
    call; the retry that follows it never prompts again.
    """

    UNLOCK_REQUEST = StorageUnlockRequest(
        description="You are trying to access data on your filesystem",
        action="Please grant permissions in the next dialog",
        requires_secret=False,
    )

    def __init__(
        self,
        source_store: StorageSourceStore,
        source_name: str = "",
        unlock_resolver: Optional[UnlockResolver] = None,
        ask_for_storage_unlock: bool = True,
    ):
        self.source_store = source_store
        self.source_name = source_name
        self.unlock_resolver = unlock_resolver
        self.ask_for_storage_unlock = ask_for_storage_unlock
        self._root: Optional[DirectoryHandle] = None

    @property
    def root(self) -> Optional[DirectoryHandle]:
        return self._root

    def clear(self) -> None:
        self._root = None

    async def ensure_root(self, allow_interactive_unlock: Optional[bool] = None) -> DirectoryHandle:
        """
        Return the root handle, acquiring it if needed.

        Args:
            allow_interactive_unlock: Prompt even when a root is cached.
                Defaults to the ``ask_for_storage_unlock`` setting.

        Raises:
            PermissionDenied, SourceNotFound, WrongHandleKind, HandleMissing
        """
        if allow_interactive_unlock is None:
            allow_interactive_unlock = self.ask_for_storage_unlock

        try:
            return await self._acquire()
        except Exception as error:
            if not self._can_unlock(error, allow_interactive_unlock):
                raise
            logger.info(f"Storage source '{self.source_name}' needs user activation")

        await self.unlock_resolver(self.UNLOCK_REQUEST)

        return await self._acquire()

    def _can_unlock(self, error: BaseException, allow_interactive_unlock: bool) -> bool:
        if self.unlock_resolver is None or not needs_user_activation(error):
            return False
        return self._root is None or allow_interactive_unlock

    async def _acquire(self) -> DirectoryHandle:
        if self._root is not None:
            await verify_permission(self._root)
            return self._root

        record = await self.source_store.get(self.source_name)

        if record is None:
            raise SourceNotFound(self.source_name)

        if record.kind == StorageSourceKind.BLOB:
            raise WrongHandleKind(self.source_name)

        handle = record.resolve_handle()

        if handle is None:
            raise HandleMissing(self.source_name)

        await verify_permission(handle)

        self._root = handle
        logger.info(f"Storage root acquired for '{self.source_name}': {handle.name}")
        return handle

"""
BookFS - Batch Executor

Bounded-concurrency runner for per-title batches (indexing, deletion,
file classification). Storage sources run batches with width 1, which
serializes every operation against a shared root.
"""
import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar
from loguru import logger

T = TypeVar("T")


class BatchExecutor:
    """
    Runs one worker per item with at most ``concurrency`` in flight.

    The first failure abandons every item that has not started yet and
    is re-raised once in-flight work settles. Workers may also call
    ``abandon()`` themselves to stop the batch without an error.

    Create one executor per batch; an abandoned executor stays abandoned.
    """

    def __init__(self, concurrency: int = 1, name: str = "batch"):
        if concurrency < 1:
            raise ValueError(f"Concurrency must be at least 1, got {concurrency}")
        self.concurrency = concurrency
        self.name = name
        self._abandoned = False
        self.completed = 0
        self.skipped = 0

    @property
    def abandoned(self) -> bool:
        return self._abandoned

    def abandon(self) -> None:
        """Drop every item that has not started yet."""
        self._abandoned = True

    async def run(self, items: Iterable[T], worker: Callable[[T], Awaitable[None]]) -> int:
        """
        Run ``worker`` over ``items``.

        Args:
            items: Work items, started in iteration order
            worker: Coroutine function called once per started item

        Returns:
            Number of items whose worker completed

        Raises:
            Exception: the first worker failure
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        errors: List[BaseException] = []

        async def run_one(item: T) -> None:
            async with semaphore:
                if self._abandoned:
                    self.skipped += 1
                    return
                try:
                    await worker(item)
                except Exception as error:
                    self._abandoned = True
                    errors.append(error)
                    return
                self.completed += 1

        await asyncio.gather(*(run_one(item) for item in items))

        if self.skipped:
            logger.debug(f"{self.name}: abandoned {self.skipped} queued items")

        first_error: Optional[BaseException] = errors[0] if errors else None
        if first_error is not None:
            raise first_error

        return self.completed

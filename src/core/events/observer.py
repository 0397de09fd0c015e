import inspect
import weakref
from loguru import logger
from typing import Callable, List, Optional, Union

_Subscriber = Union[Callable, weakref.WeakMethod]


class Signal:
    """
    Synchronous notification with any number of subscribers.

    Bound methods are held weakly: a service dropped without calling
    ``disconnect`` simply stops receiving emits. Functions, lambdas and
    other callables are held strongly.

    A failing subscriber is logged and skipped; the emitter never sees
    the exception.
    """
    def __init__(self, name: str = "Signal"):
        self.name = name
        self._subscribers: List[_Subscriber] = []

    @staticmethod
    def _wrap(callback: Callable) -> _Subscriber:
        if inspect.ismethod(callback):
            return weakref.WeakMethod(callback)
        return callback

    @staticmethod
    def _resolve(subscriber: _Subscriber) -> Optional[Callable]:
        if isinstance(subscriber, weakref.WeakMethod):
            return subscriber()
        return subscriber

    def connect(self, callback: Callable) -> Callable:
        """Connect ``callback``; connecting twice has no effect."""
        subscriber = self._wrap(callback)
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)
        return callback

    def disconnect(self, callback: Callable):
        subscriber = self._wrap(callback)
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def emit(self, *args, **kwargs):
        """Call every live subscriber with the given arguments."""
        for subscriber in self._prune():
            try:
                subscriber(*args, **kwargs)
            except Exception as e:
                logger.error(f"Signal '{self.name}' error in subscriber '{subscriber}': {e}")

    def _prune(self) -> List[Callable]:
        live = []
        kept = []
        for subscriber in self._subscribers:
            callback = self._resolve(subscriber)
            if callback is not None:
                live.append(callback)
                kept.append(subscriber)
        self._subscribers = kept
        return live

    def __len__(self) -> int:
        return len(self._prune())

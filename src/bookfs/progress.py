"""
BookFS - Progress Reporting

Every public storage operation is allotted a progress budget. Its steps
report fractions of that budget and the operation flushes whatever is
left when it returns, so the increments of one successful call always
sum to the budget.
"""
from contextlib import contextmanager
from typing import Iterator, List, Optional, Protocol


class ProgressSink(Protocol):
    """Receives progress increments. Return values are ignored."""

    def report(self, increment: float) -> None:
        ...

    def reset(self, maximum: float) -> None:
        ...


class ProgressCollector:
    """Sink that records increments in memory."""

    def __init__(self):
        self.maximum = 1.0
        self.increments: List[float] = []

    def report(self, increment: float) -> None:
        self.increments.append(increment)

    def reset(self, maximum: float) -> None:
        self.maximum = maximum
        self.increments.clear()

    @property
    def total(self) -> float:
        return sum(self.increments)


class TqdmProgressSink:
    """Console progress bar."""

    def __init__(self, desc: str = "Replicating"):
        self.desc = desc
        self._bar = None

    def reset(self, maximum: float) -> None:
        from tqdm import tqdm

        self.close()
        self._bar = tqdm(total=maximum, desc=self.desc, unit="step", leave=False)

    def report(self, increment: float) -> None:
        if self._bar is None:
            self.reset(1.0)
        self._bar.update(increment)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


class ProgressScope:
    """Progress budget of a single operation call."""

    def __init__(self, sink: ProgressSink, budget: float = 1.0):
        self.sink = sink
        self.budget = budget
        self.reported = 0.0

    @property
    def remaining(self) -> float:
        return max(0.0, self.budget - self.reported)

    def report(self, fraction: Optional[float] = None) -> None:
        """
        Report ``fraction`` of this scope's budget.

        Omitting ``fraction`` reports everything that is left. Reports
        never exceed the budget.
        """
        amount = self.remaining if fraction is None else min(fraction * self.budget, self.remaining)
        if amount <= 0:
            return
        self.reported += amount
        self.sink.report(amount)

    def complete(self) -> None:
        self.report()


class ProgressReporter:
    """Opens progress scopes against a sink."""

    def __init__(self, sink: Optional[ProgressSink] = None):
        self.sink: ProgressSink = sink if sink is not None else ProgressCollector()

    @contextmanager
    def operation(self, budget: float = 1.0) -> Iterator[ProgressScope]:
        scope = ProgressScope(self.sink, budget)
        yield scope
        scope.complete()

    def reset(self, maximum: float) -> None:
        self.sink.reset(maximum)

    def report(self, increment: float = 1.0) -> None:
        self.sink.report(increment)

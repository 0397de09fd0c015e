import pytest
from unittest.mock import MagicMock, patch

from src.bookfs.progress import ProgressCollector, ProgressReporter, ProgressScope, TqdmProgressSink


def test_scope_reports_fractions_of_budget():
    sink = ProgressCollector()
    scope = ProgressScope(sink, budget=0.5)

    scope.report(0.2)
    scope.report(0.4)

    assert sink.increments == pytest.approx([0.1, 0.2])
    assert scope.remaining == pytest.approx(0.2)


def test_scope_never_exceeds_budget():
    sink = ProgressCollector()
    scope = ProgressScope(sink, budget=1.0)

    scope.report(0.7)
    scope.report(0.7)
    scope.report(0.7)

    assert sink.total == pytest.approx(1.0)
    assert len(sink.increments) == 2


def test_operation_flushes_remaining_budget():
    sink = ProgressCollector()
    reporter = ProgressReporter(sink)

    with reporter.operation(2.0) as scope:
        scope.report(0.25)

    assert sink.total == pytest.approx(2.0)


def test_failed_operation_does_not_flush():
    sink = ProgressCollector()
    reporter = ProgressReporter(sink)

    with pytest.raises(RuntimeError):
        with reporter.operation(1.0) as scope:
            scope.report(0.5)
            raise RuntimeError("boom")

    assert sink.total == pytest.approx(0.5)


def test_zero_budget_reports_nothing():
    sink = ProgressCollector()

    with ProgressReporter(sink).operation(0) as scope:
        scope.report(0.5)

    assert sink.increments == []


def test_reporter_reset_and_report():
    sink = ProgressCollector()
    reporter = ProgressReporter(sink)
    reporter.report(0.3)

    reporter.reset(3)
    reporter.report()

    assert sink.maximum == 3
    assert sink.increments == [1.0]


def test_tqdm_sink_updates_bar():
    bar = MagicMock()
    with patch("tqdm.tqdm", return_value=bar) as factory:
        sink = TqdmProgressSink(desc="Delete")
        sink.reset(3)
        sink.report(1)
        sink.close()

    factory.assert_called_once()
    assert factory.call_args.kwargs["total"] == 3
    bar.update.assert_called_once_with(1)
    bar.close.assert_called_once()

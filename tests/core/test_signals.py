import pytest
from unittest.mock import MagicMock
from src.core.events import Signal

def test_signal_event():
    """Verify Signal (ObserverEvent) behavior."""
    sig = Signal("test_signal")
    mock_handler = MagicMock()

    sig.connect(mock_handler)
    sig.emit("data", 123)

    mock_handler.assert_called_once_with("data", 123)

    sig.disconnect(mock_handler)
    sig.emit("data2")
    assert mock_handler.call_count == 1

def test_signal_connect_is_idempotent():
    sig = Signal("DataListChanged")
    handler = MagicMock()

    sig.connect(handler)
    sig.connect(handler)
    sig.emit()

    assert len(sig) == 1
    handler.assert_called_once_with()

def test_failing_subscriber_does_not_block_others():
    sig = Signal("ListLoading")
    broken = MagicMock(side_effect=RuntimeError("boom"))
    healthy = MagicMock()

    sig.connect(broken)
    sig.connect(healthy)
    sig.emit(True)

    healthy.assert_called_once_with(True)

def test_disconnect_unknown_callback():
    sig = Signal()
    sig.disconnect(MagicMock())
    assert len(sig) == 0

def test_bound_methods_are_held_weakly():
    class Listener:
        def __init__(self):
            self.calls = []

        def on_changed(self, value):
            self.calls.append(value)

    sig = Signal("ConfigChanged")
    listener = Listener()
    sig.connect(listener.on_changed)

    sig.emit(1)
    assert listener.calls == [1]
    assert len(sig) == 1

    del listener
    sig.emit(2)
    assert len(sig) == 0

def test_disconnect_bound_method():
    class Listener:
        def on_changed(self, value):
            pass

    sig = Signal()
    listener = Listener()
    sig.connect(listener.on_changed)
    sig.disconnect(listener.on_changed)

    assert len(sig) == 0

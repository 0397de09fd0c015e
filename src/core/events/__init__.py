"""
Event System - Synchronous notifications.

Provides:
- Signal: Simple observer pattern for sync notifications (config changes,
  book list changes, list loading state)

Usage:
    from src.core.events import Signal

    data_list_changed = Signal("DataListChanged")
    data_list_changed.connect(on_changed)
    data_list_changed.emit(handler)
"""
from .observer import Signal


__all__ = ["Signal"]

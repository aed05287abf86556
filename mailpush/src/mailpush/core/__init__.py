"""Core watcher logic: keyword filter, unread scanner and the IDLE watch loop.

What:
  Re-export the public surface of the processing pipeline.

Why:
  The CLI and tests import from ``mailpush.core`` so the module split between
  filter, scanner and loop can change without touching call sites.

Interfaces:
  ``FilterDecision``, ``evaluate``, ``decide``, ``SeenMessageSet``,
  ``MessageRecord``, ``ScanStats``, ``scan_unread``, ``WatchLoop``.
"""

from .filter import FilterDecision, decide, evaluate
from .scanner import MessageRecord, ScanStats, SeenMessageSet, scan_unread
from .watch import WatchLoop

__all__ = [
    "FilterDecision",
    "evaluate",
    "decide",
    "SeenMessageSet",
    "MessageRecord",
    "ScanStats",
    "scan_unread",
    "WatchLoop",
]

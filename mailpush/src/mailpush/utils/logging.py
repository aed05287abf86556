"""mailpush logging helpers emitting timestamped JSON lines with redaction.

What:
  Offer a tiny facade over Python streams so every mailpush component can emit
  one JSON object per line with consistent fields and automatic masking of
  message content.

Why:
  The watcher runs unattended for weeks; the only user-visible surface is its
  log. A structured layout keeps grepping and post-mortem diagnosis trivial
  while keeping subjects and bodies of private mail out of shared log storage.

How:
  :class:`JsonLogger` binds a stream and a component label. Severity helpers
  merge a canonical payload (``ts``, ``lvl``, ``msg``, ``component``) with a
  recursively redacted copy of the keyword arguments and flush after each line.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every entry carries an ISO8601 UTC timestamp, a severity, and a component.
  - ``subject``, ``body``, ``preview`` and ``snippet`` keys are replaced with
    ``[redacted]`` even inside nested dictionaries.
  - Streams are flushed after every write so a killed daemon loses nothing.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"subject", "body", "preview", "snippet"})


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits single-line JSON entries including timestamp, severity, component
      and optional context fields.

    Why:
      Sharing one implementation keeps the schema uniform across the session
      manager, scanner, dispatcher and watch loop, and lets tests assert on
      parsed log lines instead of ad-hoc strings.

    How:
      Stores the destination stream and component label; :meth:`log` does the
      serialisation and the severity helpers forward to it.
    """

    stream: Any = field(default_factory=lambda: sys.stdout)
    component: str = "mailpush"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Args:
          level: Human-readable severity (e.g. ``"info"``).
          message: Event name, ``snake_case`` by convention.
          extra: Optional context dictionary, redacted recursively.
        """

        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log an informational message with structured context."""

        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a recoverable condition (transient errors, skipped work)."""

        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log a failure that needs operator attention."""

        self.log("ERROR", message, extra=kwargs)

    def child(self, component: str) -> "JsonLogger":
        """Return a logger sharing this stream under another component label.

        What:
          Builds a sibling :class:`JsonLogger` with the same destination.

        Why:
          Tests inject one in-memory stream at the top (the watch loop) and
          expect the session manager, scanner and dispatcher lines to land in
          it too, each tagged with its own component.
        """

        return JsonLogger(stream=self.stream, component=component)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive values masked.

        How:
          Walks the dictionary, replaces values of :data:`SENSITIVE_KEYS` with
          :data:`REDACTED` and recurses into nested dictionaries while keeping
          their structure for downstream parsing.
        """

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Construct a :class:`JsonLogger` bound to ``component`` writing to stdout."""

    return JsonLogger(component=component)

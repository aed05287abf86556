"""Generate identifiers that correlate mailpush log lines.

What:
  Provide :func:`new_run_id`, used to tag each watch cycle and each ``once``
  invocation.

Why:
  A single IDLE cycle produces many log lines (scan, matches, dispatch,
  secondary session). A shared identifier lets operators group them when
  reading the log after the fact.

How:
  Combines an ISO8601 UTC timestamp with a short random suffix so identifiers
  sort by time and never collide between concurrent processes.

Interfaces:
  :func:`new_run_id`.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timezone


def new_run_id() -> str:
    """Return a unique identifier such as ``2024-01-01T00:00:00+00:00#1a2b3c``."""

    timestamp = datetime.now(timezone.utc).isoformat()
    suffix = secrets.token_hex(3)
    return f"{timestamp}#{suffix}"

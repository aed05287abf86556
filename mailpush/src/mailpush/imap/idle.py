"""Cooperative deadline that bounds one IMAP IDLE wait.

What:
  Provide :class:`IdleDeadline`, a one-shot timer plus cancellation token. The
  watch loop starts one per wait cycle; the session's IDLE loop polls
  :attr:`IdleDeadline.expired` between ``idle_check`` slices and leaves IDLE
  with ``DONE`` once it is set.

Why:
  IDLE blocks until the server says something. Servers drop idle connections
  after ~30 minutes and NAT boxes much sooner, so the client must end IDLE on
  its own schedule. Ending it from the timer thread would race with the
  thread reading the socket; a token checked by the reading thread keeps the
  connection single-owner and the termination graceful.

How:
  A daemon :class:`threading.Timer` sets a :class:`threading.Event` after the
  configured delay. :meth:`stop` cancels the timer when the cycle finishes
  early. Each cycle owns a fresh event, so a stale timer that fires after its
  cycle ended sets a flag nobody reads.

Interfaces:
  :class:`IdleDeadline`.
"""
from __future__ import annotations

import threading
from typing import Optional

from ..utils.logging import JsonLogger


class IdleDeadline:
    """One-shot cancellation token armed by a background timer."""

    def __init__(self, seconds: float, *, logger: Optional[JsonLogger] = None) -> None:
        self._seconds = seconds
        self._logger = logger
        self._event = threading.Event()
        self._timer = threading.Timer(seconds, self._fire)
        self._timer.daemon = True

    @property
    def seconds(self) -> float:
        return self._seconds

    @property
    def expired(self) -> bool:
        return self._event.is_set()

    def start(self) -> "IdleDeadline":
        self._timer.start()
        return self

    def expire(self) -> None:
        """Request the wait to end now; idempotent."""

        self._event.set()

    def stop(self) -> None:
        """Disarm the timer; safe to call after it fired or before it started."""

        self._timer.cancel()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def _fire(self) -> None:
        if self._logger is not None:
            self._logger.info("idle_deadline_reached", seconds=self._seconds)
        self._event.set()

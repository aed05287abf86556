"""The mailbox watch loop: connect, scan, IDLE, react, recover, repeat.

What:
  :class:`WatchLoop` owns the primary IMAP session and drives the state machine
  ``NO_SESSION → CONNECTED → WAITING → (EVENT | TIMEOUT | ERROR)`` forever.

Why:
  IDLE gives near-real-time delivery but leaves every hard problem to the
  client: bounding the wait, noticing dead connections, fetching new mail
  while the primary connection is parked in IDLE, and telling transient
  network hiccups apart from broken sessions and from configuration that can
  never work. Concentrating those decisions here keeps the session manager and
  the scanner free of policy.

How:
  Each :meth:`WatchLoop.run_cycle`:

  1. Entry: reuses the held session if it answers a liveness probe, otherwise
     opens a new one. A :class:`~mailpush.errors.ConnectError` before the
     first successful connection propagates; later ones are logged and retried
     on the next cycle after an exponential backoff.
  2. CONNECTED: runs the unread scanner on the primary session.
  3. WAITING: arms an :class:`~mailpush.imap.idle.IdleDeadline` for
     ``watch.sleep_time`` seconds and blocks in IDLE.
  4. EVENT: on ``EXISTS``, opens a second session, scans it, closes it, and
     returns to IDLE. The primary session is never touched from this path.
  5. ERROR: ``ConnectionResetError`` is transient (logged, session kept; the
     next entry probe decides). Any other ``imapclient`` or socket error aborts
     the primary session so the next cycle reconnects.

Interfaces:
  :class:`WatchLoop`, :data:`TRANSIENT_ERRORS`.

Invariants & Safety:
  - :class:`~mailpush.errors.ProtocolUnsupportedError` always propagates.
  - One deadline timer per cycle, stopped when the cycle ends.
  - The seen set is shared by primary and secondary scans; both run on the
    loop's thread, so they never overlap.
"""
from __future__ import annotations

import time
from typing import Callable, Optional

from .._wiring import exponential_backoff
from ..config.schema import RuntimeConfig
from ..errors import ConnectError
from ..imap.client import MailSession, SessionErrors, open_session
from ..imap.idle import IdleDeadline
from ..utils.ids import new_run_id
from ..utils.logging import JsonLogger, get_logger
from .scanner import ScanStats, SeenMessageSet, SupportsDispatch, scan_unread


TRANSIENT_ERRORS = (ConnectionResetError,)

OUTCOME_DEADLINE = "deadline"
OUTCOME_BYE = "bye"
OUTCOME_TRANSIENT = "transient"
OUTCOME_SESSION_FAULT = "session_fault"
OUTCOME_RECONNECT_FAILED = "reconnect_failed"


class WatchLoop:
    """Long-running IDLE watcher for one folder.

    What:
      Holds the runtime configuration, the notifier, the seen set and the
      primary session across cycles.

    Why:
      The seen set and the "have we ever connected" flag must survive
      reconnections; passing them explicitly instead of through globals also
      lets tests drive single cycles against fake sessions.

    How:
      :meth:`run_forever` calls :meth:`run_cycle` in a loop. The session
      factory, deadline factory and sleep function are injectable.
    """

    def __init__(
        self,
        runtime: RuntimeConfig,
        *,
        notifier: SupportsDispatch,
        seen: Optional[SeenMessageSet] = None,
        logger: Optional[JsonLogger] = None,
        session_factory: Callable[..., MailSession] = open_session,
        deadline_factory: Callable[..., IdleDeadline] = IdleDeadline,
        sleep: Callable[[float], None] = time.sleep,
        sleep_time: Optional[int] = None,
    ) -> None:
        self._runtime = runtime
        self._notifier = notifier
        self._seen = seen if seen is not None else SeenMessageSet()
        self._logger = logger or get_logger("mailpush.watch")
        self._session_factory = session_factory
        self._deadline_factory = deadline_factory
        self._sleep = sleep
        self._sleep_time = sleep_time or runtime.watch.sleep_time
        self._session: Optional[MailSession] = None
        self._ever_connected = False
        self._connect_failures = 0
        self._cycle_id: Optional[str] = None
        self.cycles = 0

    @property
    def session(self) -> Optional[MailSession]:
        return self._session

    @property
    def seen(self) -> SeenMessageSet:
        return self._seen

    @property
    def rules(self):
        return self._runtime.notify.words

    def run_forever(self) -> None:
        """Run cycles until a fatal error propagates or the process is interrupted."""

        self._logger.info(
            "watch_started",
            folder=self._runtime.imap.folder,
            sleep_time=self._sleep_time,
            rules=len(self.rules),
        )
        try:
            while True:
                self.run_cycle()
        finally:
            self.close()

    def run_cycle(self) -> str:
        """Execute one Entry → CONNECTED → WAITING pass.

        Returns:
          How the cycle ended: ``"deadline"``, ``"bye"``, ``"transient"``,
          ``"session_fault"`` or ``"reconnect_failed"``.

        Raises:
          ConnectError: If no session was ever established in this process.
          ProtocolUnsupportedError: If the server lacks IDLE.
        """

        self.cycles += 1
        self._cycle_id = new_run_id()
        if not self._enter():
            return OUTCOME_RECONNECT_FAILED
        session = self._session
        assert session is not None
        try:
            self._scan(session)
            deadline = self._deadline_factory(self._sleep_time, logger=self._logger)
            deadline.start()
            try:
                result = session.wait(
                    deadline,
                    self._on_new_message,
                    poll_interval=self._runtime.watch.idle_poll_seconds,
                )
            finally:
                deadline.stop()
        except TRANSIENT_ERRORS as exc:
            self._logger.warning("connection_reset", cycle_id=self._cycle_id, error=str(exc))
            return OUTCOME_TRANSIENT
        except SessionErrors as exc:
            self._logger.error(
                "session_fault",
                cycle_id=self._cycle_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self._drop_session()
            return OUTCOME_SESSION_FAULT
        self._logger.info(
            "cycle_completed",
            cycle_id=self._cycle_id,
            reason=result.reason,
            events=result.events,
        )
        return result.reason

    def close(self) -> None:
        """Log out of the primary session if one is held."""

        session, self._session = self._session, None
        if session is not None:
            session.close()

    # States -------------------------------------------------------------
    def _enter(self) -> bool:
        session = self._session
        if session is not None:
            if session.is_connected():
                return True
            self._logger.warning("session_disconnected", cycle_id=self._cycle_id)
            self._drop_session()

        try:
            self._session = self._open()
        except ConnectError as exc:
            if not self._ever_connected:
                self._logger.error("initial_connect_failed", error=str(exc))
                raise
            self._connect_failures += 1
            delay = exponential_backoff(
                base=self._runtime.watch.backoff_base,
                cap=self._runtime.watch.backoff_cap,
                failures=self._connect_failures - 1,
            )
            self._logger.error(
                "reconnect_failed",
                cycle_id=self._cycle_id,
                attempt=self._connect_failures,
                backoff_seconds=delay,
                error=str(exc),
            )
            self._sleep(delay)
            return False
        self._ever_connected = True
        self._connect_failures = 0
        self._logger.info("session_ready", cycle_id=self._cycle_id)
        return True

    def _open(self) -> MailSession:
        return self._session_factory(
            self._runtime.imap,
            logger=self._logger.child("mailpush.imap"),
        )

    def _scan(self, session: MailSession) -> ScanStats:
        return scan_unread(
            session,
            self._seen,
            self.rules,
            self._notifier,
            logger=self._logger.child("mailpush.scanner"),
        )

    def _on_new_message(self, count: int) -> None:
        """Handle an ``EXISTS`` event with a dedicated secondary session."""

        self._logger.info("new_message_event", cycle_id=self._cycle_id, exists=count)
        try:
            secondary = self._open()
        except ConnectError as exc:
            self._logger.error("secondary_connect_failed", cycle_id=self._cycle_id, error=str(exc))
            return
        try:
            self._scan(secondary)
        except SessionErrors as exc:
            self._logger.error("secondary_scan_failed", cycle_id=self._cycle_id, error=str(exc))
            secondary.abort()
            return
        secondary.close()

    def _drop_session(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.abort()

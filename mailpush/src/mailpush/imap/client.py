"""IMAP session management on top of ``imapclient``.

What:
  Open authenticated, read-only sessions on the watched folder and expose the
  handful of UID-based operations the scanner and the watch loop need,
  including an IDLE wait that can be ended cooperatively.

Why:
  Direct use of ``imapclient`` mixes several failure families (DNS, TLS,
  authentication, protocol) into different exception types, and IDLE has to be
  entered and left in a precise sequence. Centralising this keeps the rest of
  the code working with one :class:`MailSession` contract and with the typed
  :class:`~mailpush.errors.ConnectError` /
  :class:`~mailpush.errors.ProtocolUnsupportedError` failures.

How:
  :func:`open_session` connects, logs in, verifies the ``IDLE`` capability and
  selects the folder read-only (``EXAMINE``), so fetching ``RFC822`` never sets
  ``\\Seen`` on the server. :meth:`MailSession.wait` enters IDLE and polls
  ``idle_check`` in short slices until the supplied
  :class:`~mailpush.imap.idle.IdleDeadline` expires, the server says ``BYE``,
  or an exception propagates.

Interfaces:
  :func:`open_session`, :class:`MailSession`, :class:`IdleResult`,
  :func:`format_address`.

Invariants & Safety:
  - All message access is UID-based (``imapclient`` default).
  - The folder is never selected read-write; the watcher does not mutate
    mailbox state.
  - At most one IDLE is in flight per session; the deadline token is the only
    thing shared with the timer thread.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError

from ..config.schema import ImapSettings
from ..errors import ConnectError, ProtocolUnsupportedError
from ..utils.logging import JsonLogger, get_logger
from .idle import IdleDeadline


IDLE_CAPABILITY = "IDLE"
STATUS_ITEMS = ("MESSAGES", "UNSEEN", "RECENT")

SessionErrors: Tuple[type, ...] = (IMAPClientError, OSError)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def format_address(address: Any) -> str:
    """Join the mailbox and host parts of an envelope address with ``@``.

    When one part is missing the other is returned alone.
    """

    mailbox = _text(getattr(address, "mailbox", None))
    host = _text(getattr(address, "host", None))
    if not mailbox or not host:
        return mailbox or host
    return f"{mailbox}@{host}"


@dataclass
class IdleResult:
    """Summary of one IDLE wait.

    Attributes:
      events: Number of ``EXISTS`` notifications handled.
      reason: ``"deadline"`` when the token ended the wait, ``"bye"`` when the
        server closed the connection.
    """

    events: int = 0
    reason: str = "deadline"


class MailSession:
    """Authenticated IMAP connection with the watched folder selected read-only.

    What:
      Owns one ``imapclient.IMAPClient`` and tracks whether it is still usable.

    Why:
      The watch loop holds a primary session for hours and opens short-lived
      secondary ones; both need the same operations and the same explicit
      teardown semantics (polite LOGOUT vs. hard abort).

    How:
      Thin methods over the client plus a ``_connected`` flag that is cleared on
      logout, abort, server ``BYE``, or a failed liveness probe.
    """

    def __init__(
        self,
        client: IMAPClient,
        settings: ImapSettings,
        *,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._client: Optional[IMAPClient] = client
        self._settings = settings
        self._logger = logger or get_logger("mailpush.imap")
        self._connected = True

    def __enter__(self) -> "MailSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def client(self) -> IMAPClient:
        """Expose the underlying ``IMAPClient``.

        Raises:
          RuntimeError: If the session was already closed or aborted.
        """

        if self._client is None:
            raise RuntimeError("IMAP session is closed")
        return self._client

    @property
    def settings(self) -> ImapSettings:
        return self._settings

    @property
    def folder(self) -> str:
        return self._settings.folder

    # Setup --------------------------------------------------------------
    def require_idle(self) -> None:
        """Fail with :class:`ProtocolUnsupportedError` unless IDLE is advertised."""

        if not self.client.has_capability(IDLE_CAPABILITY):
            raise ProtocolUnsupportedError(
                f"{self._settings.host} does not support IMAP IDLE"
            )

    def select(self) -> Dict[str, Any]:
        """Select the configured folder in read-only mode."""

        return self.client.select_folder(self.folder, readonly=True)

    # Queries ------------------------------------------------------------
    def folder_status(self) -> Dict[str, int]:
        """Return ``MESSAGES``/``UNSEEN``/``RECENT`` counters for the folder."""

        status = self.client.folder_status(self.folder, list(STATUS_ITEMS))
        return {_text(key): value for key, value in status.items()}

    def unseen_uids(self) -> List[int]:
        """Return UIDs of messages without the ``\\Seen`` flag, in server order."""

        return list(self.client.search(["UNSEEN"]))

    def fetch_envelope(self, uid: int) -> Any:
        """Return the ``imapclient`` :class:`Envelope` for ``uid``.

        Raises:
          KeyError: If the server returned no envelope (message expunged).
        """

        response = self.client.fetch([uid], ["ENVELOPE"])
        return response[uid][b"ENVELOPE"]

    def fetch_message(self, uid: int) -> bytes:
        """Return the full RFC822 bytes of ``uid``."""

        response = self.client.fetch([uid], ["RFC822"])
        return response[uid][b"RFC822"]

    # Liveness -----------------------------------------------------------
    def is_connected(self) -> bool:
        """Return whether the session can still carry commands.

        How:
          Sessions already closed, aborted, or told ``BYE`` report ``False``
          without network traffic. Otherwise a ``NOOP`` probes the socket; any
          failure marks the session disconnected.
        """

        if self._client is None or not self._connected:
            return False
        try:
            self._client.noop()
        except SessionErrors as exc:
            self._logger.warning("session_probe_failed", error=str(exc))
            self._connected = False
            return False
        return True

    # IDLE ---------------------------------------------------------------
    def wait(
        self,
        deadline: IdleDeadline,
        on_exists: Callable[[int], None],
        *,
        poll_interval: float = 1.0,
    ) -> IdleResult:
        """Block in IDLE until ``deadline`` expires or the server hangs up.

        What:
          Enters IDLE, reacts to untagged ``EXISTS`` responses by invoking
          ``on_exists`` with the new message count, and leaves IDLE with
          ``DONE`` once the deadline token is set.

        Why:
          Polling ``idle_check`` in slices of ``poll_interval`` seconds lets the
          reading thread notice the token promptly without any other thread
          touching the socket.

        How:
          ``on_exists`` runs while this session stays in IDLE on the server, so
          it must not use this session; the watch loop opens a second one.
          Exceptions from the client or from ``on_exists`` propagate unchanged
          for the caller to classify; IDLE is not terminated in that case.

        Args:
          deadline: Per-cycle cancellation token.
          on_exists: Callback for new-message notifications.
          poll_interval: Longest single ``idle_check`` block, in seconds.

        Returns:
          :class:`IdleResult` describing how the wait ended.
        """

        client = self.client
        result = IdleResult()
        client.idle()
        self._logger.info("idle_started", folder=self.folder)
        while not deadline.expired:
            for response in client.idle_check(timeout=poll_interval):
                if _is_bye(response):
                    self._logger.warning("idle_server_bye", detail=_text(response[-1]))
                    self._connected = False
                    result.reason = "bye"
                    return result
                if _is_exists(response):
                    result.events += 1
                    self._logger.info("idle_exists", count=response[0])
                    on_exists(response[0])
        client.idle_done()
        self._logger.info("idle_ended", events=result.events)
        return result

    # Teardown -----------------------------------------------------------
    def close(self) -> None:
        """Log out politely; falls back to :meth:`abort` if LOGOUT fails."""

        if self._client is None:
            return
        try:
            self._client.logout()
        except SessionErrors as exc:
            self._logger.warning("session_logout_failed", error=str(exc))
            self.abort()
            return
        self._client = None
        self._connected = False
        self._logger.info("session_closed", host=self._settings.host)

    def abort(self) -> None:
        """Drop the connection without LOGOUT, invalidating the session."""

        client, self._client = self._client, None
        self._connected = False
        if client is None:
            return
        try:
            client.shutdown()
        except OSError as exc:
            self._logger.warning("session_shutdown_failed", error=str(exc))
        self._logger.info("session_aborted", host=self._settings.host)


def _is_exists(response: Any) -> bool:
    return (
        isinstance(response, tuple)
        and len(response) >= 2
        and isinstance(response[0], int)
        and response[1] == b"EXISTS"
    )


def _is_bye(response: Any) -> bool:
    return isinstance(response, tuple) and len(response) >= 1 and response[0] == b"BYE"


def open_session(settings: ImapSettings, *, logger: Optional[JsonLogger] = None) -> MailSession:
    """Connect, authenticate, check IDLE support and select the folder read-only.

    What:
      The session manager entry point used for both primary and secondary
      sessions.

    Why:
      Every session must satisfy the same preconditions; doing them in one
      place guarantees the watch loop never enters IDLE on a server that does
      not support it or on a folder opened read-write.

    How:
      Network, TLS and login failures are wrapped in :class:`ConnectError`; a
      missing ``IDLE`` capability raises :class:`ProtocolUnsupportedError`
      after logging out. The folder status counters are logged once selected.

    Args:
      settings: IMAP connection parameters.
      logger: Structured logger; defaults to the ``mailpush.imap`` component.

    Returns:
      A connected :class:`MailSession`.

    Raises:
      ConnectError: If the connection, login, or folder selection fails.
      ProtocolUnsupportedError: If the server lacks ``IDLE``.
    """

    logger = logger or get_logger("mailpush.imap")
    logger.info(
        "session_opening",
        host=settings.host,
        port=settings.port,
        ssl=settings.ssl,
        folder=settings.folder,
    )
    try:
        client = IMAPClient(
            settings.host,
            port=settings.port,
            ssl=settings.ssl,
            timeout=settings.timeout,
        )
    except SessionErrors as exc:
        raise ConnectError(f"Unable to connect to {settings.host}:{settings.port}: {exc}") from exc

    session = MailSession(client, settings, logger=logger)
    try:
        client.login(settings.username, settings.password)
    except SessionErrors as exc:
        session.abort()
        raise ConnectError(f"Login to {settings.host} failed: {exc}") from exc

    try:
        session.require_idle()
    except ProtocolUnsupportedError:
        session.close()
        raise
    except SessionErrors as exc:
        session.abort()
        raise ConnectError(f"Capability query on {settings.host} failed: {exc}") from exc

    try:
        session.select()
    except SessionErrors as exc:
        session.abort()
        raise ConnectError(f"Unable to examine folder {settings.folder}: {exc}") from exc
    # Some servers refuse STATUS on the selected folder; counters are informational.
    try:
        status = session.folder_status()
    except IMAPClientError as exc:
        logger.warning("folder_status_failed", folder=settings.folder, error=str(exc))
        status = {}
    except OSError as exc:
        session.abort()
        raise ConnectError(f"Connection to {settings.host} lost during STATUS: {exc}") from exc
    logger.info("session_opened", host=settings.host, folder=settings.folder, **status)
    return session

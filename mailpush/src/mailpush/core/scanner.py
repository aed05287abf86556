"""Unread scanner: route every new UNSEEN message through filter and dispatch.

What:
  List UNSEEN messages on a session, fetch envelope and full body for each UID
  not processed yet in this run, extract text, score it, notify when it scores,
  and remember the UID.

Why:
  The scanner runs at every loop entry and on every ``EXISTS`` event, often
  against the same UNSEEN set (the watcher never marks mail read). The
  process-local :class:`SeenMessageSet` is what turns these repeated scans into
  "notify each message at most once".

How:
  UIDs are handled in listing order. A UID is added to the seen set after its
  filter/dispatch step, whether or not a notification fired and whether or not
  delivery failed. Fetch failures propagate to the caller (the watch loop
  classifies them) and leave the UID unseen so a later scan retries it.

Interfaces:
  :class:`SeenMessageSet`, :class:`MessageRecord`, :class:`ScanStats`,
  :class:`SupportsDispatch`, :func:`read_message`, :func:`scan_unread`.

Invariants:
  - A UID in the seen set is never fetched or dispatched again.
  - :class:`~mailpush.errors.DispatchError` never aborts a scan.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from email.message import Message
from typing import Any, Dict, Iterator, Mapping, Optional, Protocol

from ..errors import DispatchError
from ..imap.client import MailSession, format_address
from ..utils.logging import JsonLogger, get_logger
from ..utils.mime import extract_text, parse_message
from .filter import evaluate


class SupportsDispatch(Protocol):
    """Anything able to deliver a notification for one message."""

    def dispatch(
        self,
        name: Optional[str],
        address: str,
        subject: Optional[str],
        body: str,
        priority: int,
    ) -> Dict[str, Any]:
        ...


class SeenMessageSet:
    """Thread-safe set of UIDs already routed through the notification logic.

    Lives for the process lifetime only; a restart forgets it and may notify
    again for mail that is still unread.
    """

    def __init__(self) -> None:
        self._uids: set[int] = set()
        self._lock = threading.Lock()

    def __contains__(self, uid: object) -> bool:
        with self._lock:
            return uid in self._uids

    def __len__(self) -> int:
        with self._lock:
            return len(self._uids)

    def __iter__(self) -> Iterator[int]:
        with self._lock:
            return iter(sorted(self._uids))

    def add(self, uid: int) -> bool:
        """Insert ``uid``; return ``False`` if it was already present."""

        with self._lock:
            if uid in self._uids:
                return False
            self._uids.add(uid)
            return True


@dataclass
class MessageRecord:
    """Working data for one message during a scan."""

    uid: int
    name: str
    address: str
    subject: str
    message: Message
    text: str


@dataclass
class ScanStats:
    """Counters describing one scan."""

    listed: int = 0
    skipped: int = 0
    processed: int = 0
    notified: int = 0
    dispatch_failures: int = 0
    vanished: int = 0


def _first_from_address(envelope: Any) -> str:
    senders = getattr(envelope, "from_", None) or ()
    if not senders:
        return ""
    return format_address(senders[0])


def _display_name(message: Message) -> str:
    try:
        header = message["From"]
        addresses = getattr(header, "addresses", ()) if header is not None else ()
    except (IndexError, ValueError):
        # Unparseable From header; the envelope address still identifies the sender.
        return ""
    if not addresses:
        return ""
    return addresses[0].display_name or ""


def read_message(session: MailSession, uid: int) -> MessageRecord:
    """Fetch envelope and RFC822 body of ``uid`` and build a :class:`MessageRecord`.

    What:
      Derives the sender address from the envelope (``mailbox@host`` of the
      first From entry), the display name and subject from the parsed message,
      and the plain text via :func:`~mailpush.utils.mime.extract_text`.

    Raises:
      KeyError: If the server returned nothing for ``uid``.
    """

    envelope = session.fetch_envelope(uid)
    address = _first_from_address(envelope)
    message = parse_message(session.fetch_message(uid))
    subject = message["Subject"]
    return MessageRecord(
        uid=uid,
        name=_display_name(message),
        address=address,
        subject=str(subject) if subject is not None else "",
        message=message,
        text=extract_text(message),
    )


def scan_unread(
    session: MailSession,
    seen: SeenMessageSet,
    rules: Mapping[str, int],
    notifier: SupportsDispatch,
    *,
    logger: Optional[JsonLogger] = None,
) -> ScanStats:
    """Process every UNSEEN message of ``session`` not yet in ``seen``.

    Args:
      session: Open session with the watched folder selected.
      seen: Process-wide set of handled UIDs; mutated here only.
      rules: Keyword→weight table.
      notifier: Delivery backend for messages above the sentinel.
      logger: Structured logger; defaults to the ``mailpush.scanner`` component.

    Returns:
      :class:`ScanStats` for this pass.
    """

    logger = logger or get_logger("mailpush.scanner")
    stats = ScanStats()
    uids = session.unseen_uids()
    stats.listed = len(uids)
    logger.info("scan_started", folder=session.folder, unseen=len(uids))
    for uid in uids:
        if uid in seen:
            stats.skipped += 1
            logger.info("message_already_seen", uid=uid)
            continue
        try:
            record = read_message(session, uid)
        except KeyError:
            stats.vanished += 1
            logger.warning("message_vanished", uid=uid)
            continue
        logger.info("message_new", uid=uid, sender=record.address)
        decision = evaluate(
            record.name,
            record.address,
            record.subject,
            record.text,
            rules,
            logger=logger,
        )
        if decision.should_notify:
            try:
                notifier.dispatch(
                    record.name,
                    record.address,
                    record.subject,
                    record.text,
                    decision.priority,
                )
            except DispatchError as exc:
                stats.dispatch_failures += 1
                logger.error("dispatch_failed", uid=uid, priority=decision.priority, error=str(exc))
            else:
                stats.notified += 1
        seen.add(uid)
        stats.processed += 1
    logger.info(
        "scan_completed",
        listed=stats.listed,
        skipped=stats.skipped,
        processed=stats.processed,
        notified=stats.notified,
        dispatch_failures=stats.dispatch_failures,
    )
    return stats

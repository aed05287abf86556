"""Pushover delivery for messages that passed the keyword filter.

What:
  Format a title and a bounded preview for one message and send it to the
  Pushover messages API.

Why:
  A push notification is read on a lock screen: it needs the sender and
  subject up front and a short excerpt of the body. Delivery problems are
  reported to the caller but never retried here, so a Pushover outage cannot
  stall or crash the mailbox watcher.

How:
  :func:`build_title` and :func:`truncate_body` shape the payload;
  :class:`PushoverNotifier` posts it with a ``requests`` session, checks the
  HTTP status and the API's ``status`` field, and raises
  :class:`~mailpush.errors.DispatchError` on any failure.

Interfaces:
  :class:`PushoverNotifier`, :func:`build_title`, :func:`truncate_body`,
  :data:`EMPTY_BODY_PLACEHOLDER`.

Invariants & Safety:
  - Exactly one HTTP request per :meth:`PushoverNotifier.dispatch` call.
  - The API token is never logged.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from ..config.schema import PushoverSettings
from ..errors import DispatchError
from ..utils.logging import JsonLogger, get_logger


EMPTY_BODY_PLACEHOLDER = "no mail body"


def truncate_body(body: str, max_length: int) -> str:
    """Return the first ``max_length`` characters, or the placeholder if empty."""

    short_body = (body or "")[:max_length]
    if not short_body:
        return EMPTY_BODY_PLACEHOLDER
    return short_body


def build_title(name: Optional[str], address: str, subject: Optional[str]) -> str:
    """Return ``"name - subject"``, falling back to the address without a name."""

    sender = name if name else address
    return f"{sender} - {subject or ''}"


class PushoverNotifier:
    """Send one Pushover notification per filtered message.

    What:
      Holds the delivery options and an HTTP session, and exposes
      :meth:`dispatch` for the unread scanner.

    Why:
      Keeping configuration and transport in one object lets the scanner stay
      agnostic of Pushover details and lets tests swap the HTTP session.

    How:
      Build a form payload from :class:`PushoverSettings` plus the per-message
      fields, omit unset options, and POST it.
    """

    def __init__(
        self,
        settings: PushoverSettings,
        *,
        body_length: int,
        session: Optional[requests.Session] = None,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        self._settings = settings
        self._body_length = body_length
        self._session = session or requests.Session()
        self._logger = logger or get_logger("mailpush.notify")

    @property
    def settings(self) -> PushoverSettings:
        return self._settings

    def build_payload(
        self,
        name: Optional[str],
        address: str,
        subject: Optional[str],
        body: str,
        priority: int,
    ) -> Dict[str, Any]:
        """Assemble the form fields for the messages API."""

        options = self._settings
        payload: Dict[str, Any] = {
            "token": options.token,
            "user": options.user,
            "title": build_title(name, address, subject),
            "message": truncate_body(body, self._body_length),
            "priority": priority,
        }
        optional = {
            "device": options.device,
            "sound": options.sound,
            "url": options.url,
            "url_title": options.url_title,
            "retry": options.retry,
            "expire": options.expire,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload

    def dispatch(
        self,
        name: Optional[str],
        address: str,
        subject: Optional[str],
        body: str,
        priority: int,
    ) -> Dict[str, Any]:
        """Send the notification and return Pushover's acknowledgement.

        Args:
          name: Sender display name, possibly empty.
          address: Sender address used when ``name`` is empty.
          subject: Message subject.
          body: Extracted plain text, truncated here.
          priority: Pushover priority taken from the filter decision.

        Returns:
          Decoded JSON reply (``status`` and ``request`` keys).

        Raises:
          DispatchError: On transport errors, non-2xx replies, or an API reply
            whose ``status`` is not ``1``.
        """

        payload = self.build_payload(name, address, subject, body, priority)
        try:
            response = self._session.post(
                self._settings.api_url,
                data=payload,
                timeout=self._settings.timeout,
            )
        except requests.RequestException as exc:
            raise DispatchError(f"Pushover request failed: {exc}") from exc

        try:
            reply = response.json()
        except ValueError:
            reply = {}
        if not response.ok:
            errors = reply.get("errors") if isinstance(reply, dict) else None
            raise DispatchError(
                f"Pushover rejected notification (HTTP {response.status_code}): {errors or response.text}"
            )
        if not isinstance(reply, dict) or reply.get("status") != 1:
            raise DispatchError(f"Pushover returned an unexpected reply: {reply!r}")
        self._logger.info(
            "notification_sent",
            sender=address,
            priority=priority,
            request=reply.get("request"),
        )
        return reply

    def close(self) -> None:
        self._session.close()

"""Exception hierarchy shared by mailpush subsystems.

What:
  Define the typed failures raised by configuration loading, IMAP session
  management, and notification delivery.

Why:
  The watch loop decides between "abort the process", "reconnect" and "log and
  continue" purely on exception type. Keeping the hierarchy in one module makes
  that classification explicit and keeps library exceptions (``imapclient``,
  ``requests``) from leaking past the component that raised them.

How:
  Everything derives from :class:`MailpushError`. Session failures share the
  :class:`SessionError` base so callers can treat connection problems as one
  family while still singling out :class:`ProtocolUnsupportedError`.

Interfaces:
  :class:`MailpushError`, :class:`ConfigLoadError`, :class:`RuntimeConfigError`,
  :class:`SessionError`, :class:`ConnectError`,
  :class:`ProtocolUnsupportedError`, :class:`DispatchError`.
"""
from __future__ import annotations


class MailpushError(Exception):
    """Base class for all errors raised by mailpush itself."""


class ConfigLoadError(MailpushError):
    """Configuration could not be parsed or validated."""


class RuntimeConfigError(ConfigLoadError):
    """``config.yaml`` is missing, unreadable, or fails schema validation."""


class SessionError(MailpushError):
    """Base class for IMAP session establishment failures."""


class ConnectError(SessionError):
    """Network, TLS, or authentication failure while opening a session.

    Fatal when no session was ever established in this process; afterwards the
    watch loop retries on its next cycle.
    """


class ProtocolUnsupportedError(SessionError):
    """The server does not advertise the ``IDLE`` capability.

    Never retried: server capabilities do not change between attempts.
    """


class DispatchError(MailpushError):
    """The Pushover API rejected or never received a notification."""

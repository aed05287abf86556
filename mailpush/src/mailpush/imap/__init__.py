"""Facade for the IMAP integration layer.

What:
  Surface :func:`~mailpush.imap.client.open_session`, the
  :class:`~mailpush.imap.client.MailSession` it returns, and the
  :class:`~mailpush.imap.idle.IdleDeadline` token bounding IDLE waits.

Why:
  Keeping the import surface minimal lets the watch loop and scanner depend on
  one session contract while the ``imapclient`` details stay in
  :mod:`mailpush.imap.client`.

Invariants & Safety:
  - Sessions are always opened read-only and verified for ``IDLE`` support.
"""

from .client import IdleResult, MailSession, open_session
from .idle import IdleDeadline

__all__ = ["open_session", "MailSession", "IdleResult", "IdleDeadline"]

"""mailpush: push notifications for important mail, driven by IMAP IDLE.

What:
  Aggregate package exports for the mailbox watcher and expose its namespace
  segments (configuration, core logic, IMAP handling, notification delivery,
  and utilities).

Interfaces:
  - config: YAML configuration loader and pydantic schema.
  - core: keyword filter, unread scanner, watch loop.
  - imap: session manager and IDLE deadline.
  - notify: Pushover dispatcher.
  - utils: logging, identifiers, MIME and HTML helpers.
"""

__version__ = "0.3.0"

__all__ = [
    "config",
    "core",
    "imap",
    "notify",
    "utils",
]

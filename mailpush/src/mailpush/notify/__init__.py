"""Outbound notification delivery.

Interfaces:
  ``PushoverNotifier``, ``build_title``, ``truncate_body``,
  ``EMPTY_BODY_PLACEHOLDER``.
"""

from .pushover import EMPTY_BODY_PLACEHOLDER, PushoverNotifier, build_title, truncate_body

__all__ = ["PushoverNotifier", "build_title", "truncate_body", "EMPTY_BODY_PLACEHOLDER"]

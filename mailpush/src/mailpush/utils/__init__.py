"""Expose the public utility surface for mailpush.

Interfaces:
  ``get_logger``, ``JsonLogger``, ``new_run_id``, ``parse_message``,
  ``extract_text``, ``html_to_text``.
"""

from .ids import new_run_id
from .logging import JsonLogger, get_logger
from .markup import html_to_text
from .mime import extract_text, parse_message

__all__ = [
    "get_logger",
    "JsonLogger",
    "new_run_id",
    "parse_message",
    "extract_text",
    "html_to_text",
]

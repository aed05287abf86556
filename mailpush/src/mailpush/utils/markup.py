"""Convert HTML mail bodies into visible plain text.

What:
  Provide :func:`html_to_text`, the markup sanitizer used when a message only
  carries ``text/html`` parts.

Why:
  Keyword rules and notification previews work on what a reader would see.
  Tags, inline CSS and scripts would otherwise produce false keyword matches
  and unreadable push notifications.

How:
  Parse the fragment with BeautifulSoup's built-in ``html.parser``, drop
  ``script``/``style``/``head`` subtrees, and join the remaining text nodes with
  spaces. Whitespace normalisation is left to the caller.

Interfaces:
  :func:`html_to_text`.
"""
from __future__ import annotations

from bs4 import BeautifulSoup


_INVISIBLE_TAGS = ("script", "style", "head", "noscript", "template")


def html_to_text(fragment: str) -> str:
    """Return the visible text of ``fragment`` with markup removed.

    Args:
      fragment: HTML document or fragment.

    Returns:
      Text content separated by single spaces between elements. Never raises on
      malformed markup; the parser is lenient.
    """

    if not fragment:
        return ""
    soup = BeautifulSoup(fragment, "html.parser")
    for element in soup(_INVISIBLE_TAGS):
        element.decompose()
    return soup.get_text(" ")

"""MIME parsing and text extraction for incoming mail.

What:
  Turn raw RFC822 payloads into :class:`email.message.EmailMessage` objects and
  reduce arbitrary MIME trees to one normalised plain-text string.

Why:
  Notification rules and Pushover previews need the text a person would read,
  regardless of whether the sender used a single part, ``multipart/alternative``
  or deeply nested ``multipart/mixed`` structures, and regardless of the
  charset declared (or mis-declared) by the sending client.

How:
  Use the ``email`` package's :class:`~email.parser.BytesParser` with the default
  policy. Multipart messages are flattened depth-first to their leaf parts;
  ``text/plain`` leaves win over ``text/html`` leaves, HTML goes through
  :func:`mailpush.utils.markup.html_to_text`, and whitespace is collapsed.

Interfaces:
  :func:`parse_message`, :func:`extract_text`, :func:`leaf_parts`,
  :func:`decode_part`, :func:`normalize_whitespace`.

Invariants & Safety:
  - Extraction never raises on malformed input: undecodable bytes are dropped
    and unknown charset names fall back to UTF-8.
  - :func:`extract_text` is deterministic and a fixed point of
    :func:`normalize_whitespace`.
"""
from __future__ import annotations

import codecs
import re
from email import policy
from email.message import Message
from email.parser import BytesParser
from typing import List, Optional

from .markup import html_to_text


DEFAULT_CHARSET = "utf-8"
PLAIN = "text/plain"
HTML = "text/html"

_WHITESPACE = re.compile(r"\s+")


def parse_message(raw: bytes) -> Message:
    """Parse a raw IMAP ``RFC822`` payload into a message object."""

    return BytesParser(policy=policy.default).parsebytes(raw)


def leaf_parts(message: Message) -> List[Message]:
    """Return the leaf parts of ``message`` in document order.

    A leaf is a part without sub-parts. A non-multipart message is its own
    single leaf. Attached ``message/rfc822`` parts are descended into as well.
    """

    if not message.is_multipart():
        return [message]
    leaves: List[Message] = []
    for part in message.get_payload():
        if isinstance(part, Message):
            leaves.extend(leaf_parts(part))
    return leaves


def _resolve_charset(part: Message, fallback: Optional[str]) -> str:
    charset = part.get_content_charset() or fallback or DEFAULT_CHARSET
    try:
        codecs.lookup(charset)
    except LookupError:
        return DEFAULT_CHARSET
    return charset


def decode_part(part: Message, fallback_charset: Optional[str] = None) -> str:
    """Decode the transfer-encoded body of ``part`` into text.

    What:
      Undo base64/quoted-printable encoding and decode the bytes using the
      part's declared charset, the enclosing message's charset, or UTF-8.

    Why:
      Mail clients regularly mislabel charsets or ship truncated multibyte
      sequences. Dropping invalid bytes keeps the watcher alive instead of
      failing an entire scan on one badly encoded newsletter.

    Args:
      part: Leaf part (or single-part message) to decode.
      fallback_charset: Charset declared on the top-level message.

    Returns:
      Decoded text, possibly empty.
    """

    payload = part.get_payload(decode=True)
    if payload is None:
        raw = part.get_payload()
        return raw if isinstance(raw, str) else ""
    charset = _resolve_charset(part, fallback_charset)
    try:
        return payload.decode(charset, errors="ignore")
    except (LookupError, UnicodeError):
        # Registered but not a text codec (base64, rot13), or one that rejects
        # the "ignore" handler (idna).
        return payload.decode(DEFAULT_CHARSET, errors="ignore")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs into one space and trim both ends."""

    return _WHITESPACE.sub(" ", text).strip()


def extract_text(message: Message) -> str:
    """Return the human-readable body of ``message`` as one line of text.

    What:
      Produces the text used for keyword scoring and notification previews.

    Why:
      ``multipart/alternative`` mails carry the same content twice; preferring
      the plain-text rendering avoids markup noise, while HTML-only mails still
      yield their visible text.

    How:
      Single-part messages use their own body (sanitised if HTML). Multipart
      messages are flattened to leaves and partitioned into plain and HTML
      leaves; plain leaves are concatenated in order, otherwise HTML leaves are
      concatenated and sanitised. The result is whitespace-normalised.

    Args:
      message: Parsed message from :func:`parse_message`.

    Returns:
      Normalised text, empty when no textual part exists.
    """

    fallback = message.get_content_charset()
    if not message.is_multipart():
        text = decode_part(message, fallback)
        if message.get_content_type() == HTML:
            text = html_to_text(text)
        return normalize_whitespace(text)

    leaves = leaf_parts(message)
    plain = [leaf for leaf in leaves if leaf.get_content_type() == PLAIN]
    html = [leaf for leaf in leaves if leaf.get_content_type() == HTML]
    if plain:
        text = "".join(decode_part(leaf, fallback) for leaf in plain)
    elif html:
        text = html_to_text("".join(decode_part(leaf, fallback) for leaf in html))
    else:
        text = ""
    return normalize_whitespace(text)

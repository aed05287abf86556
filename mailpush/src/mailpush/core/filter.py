"""Keyword scoring that decides whether a message deserves a push notification.

What:
  Score the combined sender/subject/body text of a message against the
  configured keyword→weight table and report the highest matching weight.

Why:
  Operators express interest as plain phrases ("invoice", "server down",
  "@boss.example"). Substring containment over one lowercased blob keeps the
  rules predictable: partial words and overlapping phrases match on purpose,
  and the sender address participates just like the body does.

How:
  Join name, address, subject and body with newlines, lowercase once, and test
  each keyword with ``in``. The maximum weight wins; no match yields
  :data:`NO_MATCH`.

Interfaces:
  :class:`FilterDecision`, :func:`evaluate`, :func:`decide`, :data:`NO_MATCH`.

Invariants:
  - Matching is case-insensitive on both the text and the keywords.
  - The decision is independent of rule order; ties report the first keyword
    seen for logging purposes only.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from ..config.schema import NO_MATCH
from ..utils.logging import JsonLogger


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of scoring one message.

    Attributes:
      priority: Highest matched weight, or :data:`NO_MATCH`.
      matches: Keywords that matched, in rule-table order.
      keyword: Keyword that produced ``priority`` (``None`` without a match).
    """

    priority: int = NO_MATCH
    matches: List[str] = field(default_factory=list)
    keyword: Optional[str] = None

    @property
    def should_notify(self) -> bool:
        return self.priority > NO_MATCH


def combine_text(name: Optional[str], address: str, subject: Optional[str], body: str) -> str:
    """Return the lowercased blob the rules are matched against."""

    return "\n".join([name or "", address or "", subject or "", body or ""]).lower()


def evaluate(
    name: Optional[str],
    address: str,
    subject: Optional[str],
    body: str,
    rules: Mapping[str, int],
    *,
    logger: Optional[JsonLogger] = None,
) -> FilterDecision:
    """Score a message against ``rules``.

    Args:
      name: Sender display name, possibly empty.
      address: Sender address (``mailbox@host``).
      subject: Message subject.
      body: Extracted plain text.
      rules: Keyword→weight table.
      logger: When given, each match and the final priority are logged.

    Returns:
      The :class:`FilterDecision` for this message.
    """

    combined = combine_text(name, address, subject, body)
    best = NO_MATCH
    best_keyword: Optional[str] = None
    matches: List[str] = []
    for word, weight in rules.items():
        keyword = word.lower()
        if keyword and keyword in combined:
            matches.append(keyword)
            if logger is not None:
                logger.info("rule_matched", keyword=keyword, weight=weight)
            if weight > best:
                best = weight
                best_keyword = keyword
    if logger is not None:
        logger.info("filter_decided", priority=best, matched=len(matches))
    return FilterDecision(priority=best, matches=matches, keyword=best_keyword)


def decide(
    name: Optional[str],
    address: str,
    subject: Optional[str],
    body: str,
    rules: Mapping[str, int],
) -> int:
    """Return the highest matched weight, or :data:`NO_MATCH`."""

    return evaluate(name, address, subject, body, rules).priority

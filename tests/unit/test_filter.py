"""
Module: tests/unit/test_filter.py

What:
    Check keyword scoring: highest weight wins, matching is case-insensitive
    substring search over name, address, subject and body, and messages
    without a match score the sentinel.
"""

import io
import json

from mailpush.config.schema import NO_MATCH
from mailpush.core.filter import combine_text, decide, evaluate
from mailpush.utils.logging import JsonLogger

RULES = {"urgent": 50, "invoice": 10, "@boss.example.test": 1}


def test_highest_matching_weight_wins():
    assert decide("", "a@x.test", "Urgent invoice", "", RULES) == 50


def test_case_insensitive_match_in_body():
    assert decide(None, "a@x.test", None, "Please pay this INVOICE", RULES) == 10


def test_address_fields_participate():
    assert decide("The Boss", "ceo@boss.example.test", "Lunch?", "", RULES) == 1


def test_no_match_returns_sentinel():
    decision = evaluate("Alice", "alice@example.test", "Hello", "How are you?", RULES)
    assert decision.priority == NO_MATCH
    assert decision.should_notify is False
    assert decision.keyword is None
    assert decision.matches == []


def test_substring_matches_inside_words():
    assert decide("", "a@x.test", "Nonurgently yours", "", RULES) == 50


def test_empty_rules_never_notify():
    assert decide("Alice", "alice@example.test", "urgent", "urgent", {}) == NO_MATCH


def test_negative_weight_still_notifies():
    decision = evaluate("", "list@news.test", "Weekly newsletter", "", {"newsletter": -2})
    assert decision.priority == -2
    assert decision.should_notify is True


def test_combined_text_is_lowercased_and_null_safe():
    assert combine_text(None, "A@B.test", None, "") == "\na@b.test\n\n"


def test_matches_are_logged():
    stream = io.StringIO()
    evaluate("", "a@x.test", "urgent invoice", "", RULES, logger=JsonLogger(stream=stream))
    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line["keyword"] for line in lines if line["msg"] == "rule_matched"] == ["urgent", "invoice"]
    assert lines[-1]["msg"] == "filter_decided"
    assert lines[-1]["priority"] == 50

"""Tests for the CLI helper functions and structured logging."""

import io
import json

from mailpush._wiring import build_notifier, exponential_backoff, resolve_sleep_time
from mailpush.utils.logging import REDACTED, JsonLogger


def test_backoff_grows_and_caps():
    delays = [exponential_backoff(base=5, cap=60, failures=n) for n in range(6)]
    assert delays == [5, 10, 20, 40, 60, 60]


def test_backoff_never_below_base():
    assert exponential_backoff(base=5, factor=0.5, cap=60, failures=3) == 5


def test_sleep_time_override(runtime):
    assert resolve_sleep_time(runtime, None) == 600
    assert resolve_sleep_time(runtime, 0) == 600
    assert resolve_sleep_time(runtime, 45) == 45


def test_build_notifier_uses_configured_body_length(runtime):
    notifier = build_notifier(runtime)
    payload = notifier.build_payload("", "a@b.test", "s", "z" * 300, 1)
    assert len(payload["message"]) == 100
    notifier.close()


def test_logger_redacts_message_content():
    stream = io.StringIO()
    logger = JsonLogger(stream=stream, component="mailpush.test")
    logger.child("mailpush.child").warning("event", subject="secret", uid=3, nested={"body": "x"})
    entry = json.loads(stream.getvalue())
    assert entry["lvl"] == "WARN"
    assert entry["component"] == "mailpush.child"
    assert entry["subject"] == REDACTED
    assert entry["nested"] == {"body": REDACTED}
    assert entry["uid"] == 3

"""CLI wiring tests ensuring Typer commands integrate with runtime helpers.

What:
  Validate the ``watch``, ``once`` and ``check-config`` commands against the
  canned configuration, with the watch loop and IMAP session replaced by
  doubles, covering success paths, interruptions and fatal exit codes.

Why:
  The CLI maps every failure family to an exit code that service managers act
  on; a regression here turns a configuration error into a restart loop or a
  crash into a silent success.

How:
  Use :class:`typer.testing.CliRunner` to invoke the commands with monkeypatched
  dependencies. ``unittest.mock`` assertions confirm the scanner and session
  interactions occur as expected.
"""
from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from mailpush.cli import app
from mailpush.core.scanner import ScanStats, SeenMessageSet
from mailpush.errors import ConnectError, ProtocolUnsupportedError


runner = CliRunner()


class _FakeLoop:
    """Watch loop double raising a preset exception from ``run_forever``."""

    instances: list["_FakeLoop"] = []
    error: BaseException = KeyboardInterrupt()

    def __init__(self, runtime: Any, **kwargs: Any) -> None:
        self.runtime = runtime
        self.kwargs = kwargs
        self.cycles = 1
        self.seen = SeenMessageSet()
        _FakeLoop.instances.append(self)

    def run_forever(self) -> None:
        raise self.error


@pytest.fixture
def fake_loop(monkeypatch: pytest.MonkeyPatch):
    _FakeLoop.instances = []
    monkeypatch.setattr("mailpush.cli.WatchLoop", _FakeLoop)
    return _FakeLoop


def test_check_config_prints_summary_without_secrets() -> None:
    """``mailpush check-config`` summarises the file and hides credentials."""

    result = runner.invoke(app, ["check-config"])

    assert result.exit_code == 0
    assert "imaps://watcher@example.test@imap.example.test:993/INBOX" in result.output
    assert "sleep_time: 600s" in result.output
    assert "rules: 4" in result.output
    assert result.output.index("urgent") < result.output.index("invoice")
    assert "hunter2" not in result.output
    assert "t-test-token" not in result.output


def test_missing_config_exits_with_error(tmp_path) -> None:
    result = runner.invoke(app, ["check-config", "--config", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1


def test_watch_keyboard_interrupt_exits_cleanly(fake_loop) -> None:
    """``mailpush watch`` exits 0 on ``KeyboardInterrupt`` and honours ``--sleep-time``."""

    fake_loop.error = KeyboardInterrupt()
    result = runner.invoke(app, ["watch", "--sleep-time", "30"])

    assert result.exit_code == 0
    (loop,) = fake_loop.instances
    assert loop.kwargs["sleep_time"] == 30
    assert loop.runtime.imap.host == "imap.example.test"


@pytest.mark.parametrize(
    "error",
    [ProtocolUnsupportedError("no IDLE"), ConnectError("connection refused")],
)
def test_watch_fatal_errors_exit_with_one(fake_loop, error: Exception) -> None:
    fake_loop.error = error
    result = runner.invoke(app, ["watch"])
    assert result.exit_code == 1


def test_once_happy_path(monkeypatch: pytest.MonkeyPatch) -> None:
    """``mailpush once`` opens one session and runs a single scan."""

    session = MagicMock()
    session.__enter__.return_value = session
    open_session = MagicMock(return_value=session)
    monkeypatch.setattr("mailpush.cli.open_session", open_session)

    scan = MagicMock(return_value=ScanStats(listed=2, processed=2, notified=1))
    monkeypatch.setattr("mailpush.cli.scan_unread", scan)

    result = runner.invoke(app, ["once"])

    assert result.exit_code == 0
    assert open_session.call_args.args[0].host == "imap.example.test"
    args = scan.call_args.args
    assert args[0] is session
    assert args[2]["urgent"] == 50
    session.__exit__.assert_called_once()
    assert '"msg":"once_completed"' in result.output


def test_once_connect_failure_exits_with_one(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "mailpush.cli.open_session",
        MagicMock(side_effect=ConnectError("Login failed")),
    )
    result = runner.invoke(app, ["once"])
    assert result.exit_code == 1

"""Pytest fixtures for unit tests requiring IMAP fakes.

What:
  Make ``tests/unit`` importable and expose a ``mail_store`` fixture backed by
  :class:`FakeMailStore`, plus the loaded test runtime configuration.

Why:
  Session, scanner and watch loop tests all talk to ``imapclient``. Routing the
  constructor to an in-memory store keeps them off the network and lets each
  test script IDLE responses and failures.

How:
  Monkeypatch ``mailpush.imap.client.IMAPClient`` with
  :meth:`FakeMailStore.connect`; every ``open_session`` call then yields a new
  fake connection on the shared store.

Interfaces:
  :func:`mail_store`, :func:`runtime`, :func:`recording_notifier`.
"""

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

from mailpush.config.loader import load_runtime_config

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from fakes import FakeMailStore


class RecordingNotifier:
    """Notifier double capturing dispatch calls; can be told to fail."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.error: Exception | None = None

    def dispatch(self, name, address, subject, body, priority):
        if self.error is not None:
            raise self.error
        payload = {
            "name": name,
            "address": address,
            "subject": subject,
            "body": body,
            "priority": priority,
        }
        self.sent.append(payload)
        return {"status": 1}

    def close(self) -> None:
        pass


@pytest.fixture
def mail_store(monkeypatch: pytest.MonkeyPatch) -> FakeMailStore:
    """Return a fresh fake mailbox wired in place of ``IMAPClient``."""

    store = FakeMailStore()
    monkeypatch.setattr("mailpush.imap.client.IMAPClient", store.connect)
    return store


@pytest.fixture
def runtime():
    """Return the runtime configuration from ``tests/data/config.yaml``."""

    return load_runtime_config()


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()

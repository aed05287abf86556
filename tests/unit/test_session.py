"""
Module: tests/unit/test_session.py

What:
    Cover the session manager: read-only selection, capability enforcement,
    error wrapping on connect and login, liveness probing and the IDLE wait
    (deadline, ``EXISTS`` callback, server ``BYE``).

Why:
    Every policy decision in the watch loop relies on these failure types and
    on IDLE being entered and left correctly.

How:
    Route ``IMAPClient`` to :class:`FakeMailStore` and drive
    :meth:`MailSession.wait` with :class:`StepDeadline` instead of a timer.
"""

import io
import json

import pytest
from imapclient.exceptions import IMAPClientError

from fakes import StepDeadline

from mailpush.errors import ConnectError, ProtocolUnsupportedError
from mailpush.imap.client import format_address, open_session
from mailpush.utils.logging import JsonLogger


def _open(runtime, stream=None):
    return open_session(runtime.imap, logger=JsonLogger(stream=stream or io.StringIO()))


def test_folder_selected_read_only(mail_store, runtime):
    session = _open(runtime)
    connection = mail_store.connections[0]
    assert connection.logged_in
    assert connection.selected == "INBOX"
    assert connection.readonly is True
    assert (connection.host, connection.port, connection.ssl) == ("imap.example.test", 993, True)
    assert session.is_connected()


def test_status_counters_logged_on_open(mail_store, runtime):
    mail_store.add(b"Subject: a\r\n\r\nbody\r\n")
    stream = io.StringIO()
    _open(runtime, stream)
    opened = [json.loads(line) for line in stream.getvalue().splitlines()][-1]
    assert opened["msg"] == "session_opened"
    assert opened["MESSAGES"] == 1
    assert opened["UNSEEN"] == 1


def test_missing_idle_capability_logs_out(mail_store, runtime):
    """
    What:
        Servers without IDLE are rejected with ``ProtocolUnsupportedError``.

    Why:
        The watcher cannot work without IDLE; the connection is still closed
        politely before the error propagates.
    """

    mail_store.capabilities.discard(b"IDLE")
    with pytest.raises(ProtocolUnsupportedError):
        _open(runtime)
    assert mail_store.connections[0].logged_out


def test_refused_connection_raises_connect_error(mail_store, runtime):
    mail_store.refuse_connect = True
    with pytest.raises(ConnectError, match="imap.example.test:993"):
        _open(runtime)


def test_login_failure_raises_connect_error(mail_store, runtime):
    mail_store.reject_login = True
    with pytest.raises(ConnectError, match="Login"):
        _open(runtime)
    assert mail_store.connections[0].shut_down


def test_probe_failure_marks_session_disconnected(mail_store, runtime):
    session = _open(runtime)
    mail_store.dead = True
    assert session.is_connected() is False
    mail_store.dead = False
    assert session.is_connected() is False


def test_close_and_abort_invalidate_session(mail_store, runtime):
    first = _open(runtime)
    first.close()
    assert mail_store.connections[0].logged_out
    assert first.is_connected() is False

    second = _open(runtime)
    second.abort()
    assert mail_store.connections[1].shut_down
    assert not mail_store.connections[1].logged_out
    with pytest.raises(RuntimeError):
        second.client


def test_wait_ends_on_deadline(mail_store, runtime):
    session = _open(runtime)
    connection = mail_store.connections[0]
    result = session.wait(StepDeadline(3), lambda count: None, poll_interval=0.01)
    assert result.reason == "deadline"
    assert result.events == 0
    assert connection.idle_count == 1
    assert connection.idling is False


def test_wait_invokes_callback_on_exists(mail_store, runtime):
    mail_store.idle_batches = [[(1, b"RECENT")], [(5, b"EXISTS")]]
    session = _open(runtime)
    counts = []
    result = session.wait(StepDeadline(3), counts.append)
    assert counts == [5]
    assert result.events == 1
    assert result.reason == "deadline"


def test_wait_stops_on_server_bye(mail_store, runtime):
    mail_store.idle_batches = [[(b"BYE", b"Server shutting down")]]
    session = _open(runtime)
    result = session.wait(StepDeadline(5), lambda count: None)
    assert result.reason == "bye"
    assert session.is_connected() is False


def test_wait_propagates_client_errors(mail_store, runtime):
    mail_store.idle_error = IMAPClientError("unexpected response")
    session = _open(runtime)
    with pytest.raises(IMAPClientError):
        session.wait(StepDeadline(5), lambda count: None)


def test_format_address_joins_mailbox_and_host():
    class Address:
        mailbox = b"ops"
        host = b"example.test"

    assert format_address(Address()) == "ops@example.test"
    Address.host = None
    assert format_address(Address()) == "ops"


def test_format_address_without_mailbox_returns_host():
    class Address:
        mailbox = None
        host = b"example.test"

    assert format_address(Address()) == "example.test"

"""Tests for the TCP session lifecycle against a loopback server."""

import socket
import struct
import threading
import time
from unittest.mock import patch

import pytest

from trick_vs_mcp.errors import (
    ConnectFailed,
    CreateFailed,
    InvalidAddress,
    ReceiveFailed,
    SendFailed,
    SessionStateError,
    ShutdownFailed,
)
from trick_vs_mcp.protocol.framing import ReceiveMode
from trick_vs_mcp.transport.tcp_connection import (
    SessionState,
    VariableServerConnection,
    open_session,
)


def test_new_session_is_unconnected():
    conn = VariableServerConnection()
    assert conn.state is SessionState.UNCONNECTED
    assert not conn.connected
    assert conn.peer is None


def test_open_session_allocates_socket():
    conn = open_session()
    try:
        assert conn.state is SessionState.UNCONNECTED
        with pytest.raises(SessionStateError):
            conn.open()
    finally:
        conn.close()


def test_connect_requires_open():
    conn = VariableServerConnection()
    with pytest.raises(SessionStateError):
        conn.connect("127.0.0.1", 1)


def test_send_before_connect_is_usage_error():
    conn = open_session()
    try:
        with pytest.raises(SessionStateError):
            conn.send(b"trick.var_send()\n")
        with pytest.raises(SessionStateError):
            conn.receive(100)
    finally:
        conn.close()


def test_invalid_address_does_not_resolve():
    conn = open_session()
    try:
        with pytest.raises(InvalidAddress):
            conn.connect("localhost", 7000)
        with pytest.raises(ConnectFailed):
            conn.connect("300.1.1.1", 7000)
        assert conn.state is SessionState.UNCONNECTED
    finally:
        conn.close()


def test_port_out_of_range():
    conn = open_session()
    try:
        with pytest.raises(ValueError):
            conn.connect("127.0.0.1", 70000)
    finally:
        conn.close()


def test_connect_refused_then_retry(fake_server, closed_port):
    """A failed connect leaves the session retryable."""
    conn = open_session()
    try:
        with pytest.raises(ConnectFailed):
            conn.connect("127.0.0.1", closed_port)
        assert conn.state is SessionState.UNCONNECTED

        server = fake_server()
        conn.connect("127.0.0.1", server.port)
        assert conn.state is SessionState.CONNECTED
        assert conn.peer == ("127.0.0.1", server.port)
    finally:
        conn.close()


def test_send_returns_byte_count(fake_server):
    server = fake_server(wait_for=1)
    conn = open_session()
    conn.connect("127.0.0.1", server.port)
    line = b"trick.var_pause()\n"

    assert conn.send(line) == len(line)

    conn.shutdown()
    conn.close()
    server.join()
    assert server.lines == ["trick.var_pause()"]


def test_receive_after_peer_close_is_empty(fake_server):
    server = fake_server(replies=[b"0\t1.0\n"])
    conn = open_session()
    conn.connect("127.0.0.1", server.port)
    try:
        data = b""
        while len(data) < 6:
            frame = conn.receive(2000)
            assert frame
            data += frame
        assert data == b"0\t1.0\n"
        assert conn.receive(2000) == b""
    finally:
        conn.close()


def test_peek_leaves_data_queued(fake_server):
    server = fake_server(replies=[b"hello"])
    conn = open_session()
    conn.connect("127.0.0.1", server.port)
    try:
        peeked = conn.receive(5, ReceiveMode(peek=True))
        assert peeked
        consumed = conn.receive(5, ReceiveMode(wait_all=True))
        assert consumed == b"hello"
        assert consumed.startswith(peeked)
    finally:
        conn.close()


def test_receive_rejects_non_positive_length(fake_server):
    server = fake_server()
    conn = open_session()
    conn.connect("127.0.0.1", server.port)
    try:
        with pytest.raises(ValueError):
            conn.receive(0)
    finally:
        conn.close()


def test_shutdown_closes_session(fake_server):
    server = fake_server()
    conn = open_session()
    conn.connect("127.0.0.1", server.port)

    conn.shutdown()

    assert conn.state is SessionState.CLOSED
    with pytest.raises(SessionStateError):
        conn.send(b"trick.var_send()\n")
    with pytest.raises(SessionStateError):
        conn.shutdown()
    conn.close()


def test_close_is_repeatable(fake_server):
    server = fake_server()
    conn = open_session()
    conn.connect("127.0.0.1", server.port)
    conn.close()
    conn.close()
    assert conn.state is SessionState.CLOSED
    with pytest.raises(SessionStateError):
        conn.connect("127.0.0.1", server.port)


@pytest.fixture
def reset_session():
    """A connected session whose peer has aborted the connection with RST."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    conn = open_session()
    conn.connect("127.0.0.1", listener.getsockname()[1])
    peer, _ = listener.accept()
    peer.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
    peer.close()
    listener.close()
    yield conn
    conn.close()


def test_close_unblocks_pending_receive(fake_server):
    server = fake_server(wait_for=1)
    conn = open_session()
    conn.connect("127.0.0.1", server.port)
    outcome = []

    def reader():
        try:
            outcome.append(conn.receive(100))
        except ReceiveFailed as e:
            outcome.append(e)

    thread = threading.Thread(target=reader, daemon=True)
    thread.start()
    time.sleep(0.2)

    conn.close()
    thread.join(2)

    assert not thread.is_alive()
    assert len(outcome) == 1
    assert conn.state is SessionState.CLOSED


def test_open_with_invalid_family():
    conn = VariableServerConnection(family=12345)
    with pytest.raises(CreateFailed):
        conn.open()
    assert conn.state is SessionState.UNCONNECTED


def test_receive_after_reset(reset_session):
    with pytest.raises(ReceiveFailed):
        reset_session.receive(100)
    assert reset_session.state is SessionState.CONNECTED


def test_send_after_reset(reset_session):
    with pytest.raises(SendFailed):
        for _ in range(100):
            reset_session.send(b"trick.var_send()\n")
            time.sleep(0.01)


def test_shutdown_failure_still_closes(reset_session):
    with pytest.raises(ReceiveFailed):
        reset_session.receive(100)

    with pytest.raises(ShutdownFailed):
        reset_session.shutdown()

    assert reset_session.state is SessionState.CLOSED


def test_connect_failure_without_replacement_socket(fake_server, closed_port):
    """ConnectFailed is still raised when no new socket can be made."""
    conn = open_session()
    try:
        with patch.object(conn, "_create_socket", side_effect=CreateFailed("no fds")):
            with pytest.raises(ConnectFailed):
                conn.connect("127.0.0.1", closed_port)
        assert conn.state is SessionState.UNCONNECTED
        with pytest.raises(SessionStateError):
            conn.connect("127.0.0.1", closed_port)

        server = fake_server()
        conn.open()
        conn.connect("127.0.0.1", server.port)
        assert conn.connected
    finally:
        conn.close()

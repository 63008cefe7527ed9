import socket
import threading

import pytest


class FakeVariableServer:
    """Loopback TCP server that records command lines and plays back replies.

    Replies are sent once ``wait_for`` command lines have arrived, then the
    server closes the stream in an orderly way.
    """

    def __init__(self, replies=(), wait_for=0):
        self.replies = list(replies)
        self.wait_for = wait_for
        self.received = b""
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(1)
        self.port = self._listener.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self):
        self._thread.start()
        return self

    def _serve(self):
        conn, _ = self._listener.accept()
        with conn:
            while self.received.count(b"\n") < self.wait_for:
                chunk = conn.recv(4096)
                if not chunk:
                    return
                self.received += chunk
            for reply in self.replies:
                conn.sendall(reply)
            conn.shutdown(socket.SHUT_WR)
            # Drain until the client goes away
            while True:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                self.received += chunk

    def join(self, timeout=5):
        self._thread.join(timeout)

    def close(self):
        self._listener.close()

    @property
    def lines(self):
        return self.received.decode("utf-8").splitlines()


@pytest.fixture
def fake_server():
    servers = []

    def factory(replies=(), wait_for=0):
        server = FakeVariableServer(replies, wait_for).start()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        server.close()


@pytest.fixture
def closed_port():
    """A loopback port with nothing listening on it."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port

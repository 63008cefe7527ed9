"""TCP session to a Trick variable server.

The variable server listens on a plain TCP port on the simulation host.
A session owns exactly one socket and moves through three states::

    UNCONNECTED --connect--> CONNECTED --shutdown/close--> CLOSED

Every primitive is a single blocking attempt. Short sends are reported,
not retried, and nothing here reconnects on its own.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
from enum import Enum

from ..errors import (
    ConnectFailed,
    CreateFailed,
    InvalidAddress,
    ReceiveFailed,
    SendFailed,
    SessionStateError,
    ShutdownFailed,
)
from ..protocol.framing import DEFAULT_MODE, ReceiveMode

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    CLOSED = "closed"


class VariableServerConnection:
    """Owns the socket used to talk to one variable server.

    Usage::

        conn = VariableServerConnection()
        conn.open()
        conn.connect("127.0.0.1", 40000)
        conn.send(b'trick.var_add("time")\\n')
        frame = conn.receive(2000)
        conn.shutdown()
        conn.close()
    """

    def __init__(
        self,
        family: int = socket.AF_INET,
        kind: int = socket.SOCK_STREAM,
        proto: int = 0,
    ) -> None:
        self._family = family
        self._kind = kind
        self._proto = proto
        self._sock: socket.socket | None = None
        self._state = SessionState.UNCONNECTED
        self._peer: tuple[str, int] | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is SessionState.CONNECTED

    @property
    def peer(self) -> tuple[str, int] | None:
        """The (host, port) pair of the connected server, if any."""
        return self._peer

    def open(self) -> VariableServerConnection:
        """Allocate the socket.

        Raises:
            SessionStateError: If the session is already open or closed.
            CreateFailed: If the operating system refuses the socket.
        """
        if self._state is not SessionState.UNCONNECTED or self._sock is not None:
            raise SessionStateError(f"Cannot open a session that is {self._state.value}")
        self._sock = self._create_socket()
        return self

    def _create_socket(self) -> socket.socket:
        try:
            return socket.socket(self._family, self._kind, self._proto)
        except OSError as e:
            raise CreateFailed(f"Could not create socket: {e}") from e

    def connect(self, host: str, port: int) -> None:
        """Connect to the variable server at ``host``:``port``.

        ``host`` must be an IPv4 dotted-quad literal; no name lookup is done.
        On failure the session stays UNCONNECTED with a fresh socket, so
        ``connect`` may be called again. If no fresh socket can be made,
        call :meth:`open` before retrying.

        Raises:
            InvalidAddress: If ``host`` is not an IPv4 literal.
            ValueError: If ``port`` is outside 0-65535.
            ConnectFailed: If the server cannot be reached.
        """
        if self._state is not SessionState.UNCONNECTED:
            raise SessionStateError(f"Cannot connect a session that is {self._state.value}")
        if self._sock is None:
            raise SessionStateError("Session has no socket; call open() first")
        try:
            address = str(ipaddress.IPv4Address(host))
        except ValueError as e:
            raise InvalidAddress(f"Not an IPv4 address: {host!r}") from e
        if not 0 <= port <= 0xFFFF:
            raise ValueError(f"Port must be 0-65535, got {port}")

        try:
            self._sock.connect((address, port))
        except OSError as e:
            # A socket whose connect failed is not reliably reusable
            self._sock.close()
            self._sock = None
            try:
                self._sock = self._create_socket()
            except CreateFailed as create_error:
                logger.warning("Could not replace socket after failed connect: %s", create_error)
            raise ConnectFailed(
                f"Could not connect to variable server at {address}:{port}: {e}"
            ) from e

        self._state = SessionState.CONNECTED
        self._peer = (address, port)
        logger.info("Connected to variable server at %s:%d", address, port)

    def _require_connected(self) -> socket.socket:
        if self._state is not SessionState.CONNECTED or self._sock is None:
            raise SessionStateError(f"Session is {self._state.value}, not connected")
        return self._sock

    def send(self, data: bytes) -> int:
        """Make one send attempt.

        Returns:
            Number of bytes written, which may be less than ``len(data)``.

        Raises:
            SessionStateError: If not connected.
            SendFailed: If the transport reports an error.
        """
        sock = self._require_connected()
        try:
            written = sock.send(data)
        except OSError as e:
            raise SendFailed(f"Send failed: {e}") from e
        if written < len(data):
            logger.debug("Short send: %d of %d bytes", written, len(data))
        return written

    def receive(self, max_length: int, mode: ReceiveMode = DEFAULT_MODE) -> bytes:
        """Receive up to ``max_length`` bytes, blocking until some arrive.

        Returns:
            The bytes read. ``b""`` means the server closed the stream.

        Raises:
            SessionStateError: If not connected.
            ReceiveFailed: If the transport reports an error.
        """
        if max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        sock = self._require_connected()
        try:
            data = sock.recv(max_length, mode.flags)
        except OSError as e:
            raise ReceiveFailed(f"Receive failed: {e}") from e
        logger.debug("Received %d bytes", len(data))
        return data

    def shutdown(self) -> None:
        """Stop sending and receiving in both directions.

        The socket itself is kept until :meth:`close`.

        Raises:
            SessionStateError: If not connected.
            ShutdownFailed: If the transport reports an error.
        """
        sock = self._require_connected()
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            raise ShutdownFailed(f"Shutdown failed: {e}") from e
        finally:
            self._state = SessionState.CLOSED
        logger.info("Session shut down")

    def close(self) -> None:
        """Release the socket. Calling this again is a no-op."""
        if self._sock is None:
            self._state = SessionState.CLOSED
            return
        if self._state is SessionState.CONNECTED:
            # Wakes any thread blocked in receive on this socket
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                logger.debug("Shutdown before close failed: %s", e)
        try:
            self._sock.close()
        finally:
            self._sock = None
            self._state = SessionState.CLOSED
            logger.info("Session closed")


def open_session(
    family: int = socket.AF_INET,
    kind: int = socket.SOCK_STREAM,
    proto: int = 0,
) -> VariableServerConnection:
    """Create a session with its socket already allocated."""
    return VariableServerConnection(family, kind, proto).open()

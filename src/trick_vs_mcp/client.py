"""High-level client: one method per variable server command.

The client only encodes and sends. Replies are returned exactly as the
transport delivered them; decoding is left to the caller, whose choice of
``set_ascii``/``set_binary`` decides what the bytes look like.
"""

from __future__ import annotations

import logging
from typing import Iterator, Protocol

from .config import DEFAULT_FRAME_SIZE, NAMESPACE
from .errors import VariableServerError
from .protocol import commands
from .protocol.commands import Command, CopyMode, encode, encode_line
from .protocol.framing import DEFAULT_MODE, ReceiveMode, iter_frames
from .transport.tcp_connection import SessionState

logger = logging.getLogger(__name__)


class Transport(Protocol):
    connected: bool
    peer: tuple[str, int] | None
    state: SessionState

    def send(self, data: bytes) -> int:
        ...

    def receive(self, max_length: int, mode: ReceiveMode = DEFAULT_MODE) -> bytes:
        ...

    def shutdown(self) -> None:
        ...

    def close(self) -> None:
        ...


class VariableServerClient:
    """Sends variable server commands over a connected transport.

    Every command method returns the byte count from its single send
    call. Encoding errors are raised before anything reaches the transport.

    Usage::

        client = VariableServerClient(open_session())
        client.connection.connect("127.0.0.1", 40000)
        client.set_cycle(0.5)
        client.add_variable("time")
        for frame in client.frames():
            ...
    """

    def __init__(self, connection: Transport, namespace: str = NAMESPACE) -> None:
        self._connection = connection
        self._namespace = namespace

    @property
    def connection(self) -> Transport:
        return self._connection

    @property
    def namespace(self) -> str:
        return self._namespace

    def send_command(self, command: Command) -> int:
        """Encode ``command`` and send it as one line."""
        line = encode(command, self._namespace)
        logger.debug("Sending %r", line)
        return self._connection.send(line)

    def send_raw(self, text: str) -> int:
        """Send free-form command text, e.g. ``trick.stop()``.

        The newline is appended here; ``text`` must not include one.
        """
        line = encode_line(text)
        logger.debug("Sending raw %r", line)
        return self._connection.send(line)

    # ─── Reply format ─────────────────────────────────────────────────

    def set_ascii(self) -> int:
        return self.send_command(commands.build_ascii())

    def set_binary(self) -> int:
        return self.send_command(commands.build_binary())

    def set_binary_nonames(self) -> int:
        return self.send_command(commands.build_binary_nonames())

    def set_synchronized(self) -> int:
        return self.send_command(commands.build_sync())

    # ─── Update flow ──────────────────────────────────────────────────

    def pause(self) -> int:
        return self.send_command(commands.build_pause())

    def unpause(self) -> int:
        return self.send_command(commands.build_unpause())

    def set_cycle(self, period: float) -> int:
        """Set the update period in seconds."""
        return self.send_command(commands.build_cycle(period))

    def set_copy_mode(self, mode: CopyMode | int) -> int:
        return self.send_command(commands.build_copy_mode(mode))

    def poll(self) -> int:
        """Ask for one reply frame right away, outside the update cycle."""
        return self.send_command(commands.build_poll())

    # ─── Variables ────────────────────────────────────────────────────

    def add_variable(self, name: str) -> int:
        return self.send_command(commands.build_add_variable(name))

    def add_variable_with_units(self, name: str, units: str) -> int:
        return self.send_command(commands.build_add_variable(name, units))

    def remove_variable(self, name: str) -> int:
        return self.send_command(commands.build_remove_variable(name))

    def clear(self) -> int:
        """Unsubscribe every variable."""
        return self.send_command(commands.build_clear())

    # ─── Simulation control ───────────────────────────────────────────

    def run(self) -> int:
        return self.send_command(commands.build_run())

    def freeze(self) -> int:
        return self.send_command(commands.build_freeze())

    def set_real_time(self, enabled: bool) -> int:
        return self.send_command(commands.build_real_time(enabled))

    # ─── Server settings ──────────────────────────────────────────────

    def set_validate_addresses(self, validate: bool) -> int:
        return self.send_command(commands.build_validate_addresses(validate))

    def set_debug_level(self, level: int) -> int:
        return self.send_command(commands.build_debug(level))

    def set_client_tag(self, tag: str) -> int:
        return self.send_command(commands.build_client_tag(tag))

    # ─── Replies ──────────────────────────────────────────────────────

    def receive_frame(
        self,
        max_length: int = DEFAULT_FRAME_SIZE,
        mode: ReceiveMode = DEFAULT_MODE,
    ) -> bytes:
        """Read one frame; ``b""`` means the server closed the stream."""
        return self._connection.receive(max_length, mode)

    def frames(self, max_length: int = DEFAULT_FRAME_SIZE) -> Iterator[bytes]:
        """Yield frames until the server closes the stream."""
        return iter_frames(self._connection, max_length)

    # ─── Teardown ─────────────────────────────────────────────────────

    def disconnect(self) -> int:
        """Send ``var_exit``. The transport is left open; see :meth:`close`."""
        written = self.send_command(commands.build_exit())
        logger.info("Sent var_exit")
        return written

    def close(self) -> None:
        """Release the transport without telling the server."""
        self._connection.close()

    def exit(self) -> None:
        """Send ``var_exit`` if possible, then release the transport."""
        try:
            self.disconnect()
        except VariableServerError as e:
            logger.warning("Could not send var_exit: %s", e)
        finally:
            self.close()

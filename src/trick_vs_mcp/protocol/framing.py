"""Receive-side framing for variable server replies.

The server sends reply frames on its own update cycle with no length
prefix and no reliable terminator. A "frame" here is simply whatever one
``recv`` call returns: it may hold part of a server message, exactly one,
or several. An empty frame means the server closed the stream.
"""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Iterator, Protocol

from ..config import DEFAULT_FRAME_SIZE


@dataclass(frozen=True)
class ReceiveMode:
    """Flags for a single receive call.

    - ``peek``: leave the data queued for the next receive.
    - ``out_of_band``: read urgent (out-of-band) data.
    - ``wait_all``: block until ``max_length`` bytes arrive or the stream ends.
    """

    peek: bool = False
    out_of_band: bool = False
    wait_all: bool = False

    @property
    def flags(self) -> int:
        flags = 0
        if self.peek:
            flags |= socket.MSG_PEEK
        if self.out_of_band:
            flags |= socket.MSG_OOB
        if self.wait_all:
            flags |= socket.MSG_WAITALL
        return flags


DEFAULT_MODE = ReceiveMode()


class FrameSource(Protocol):
    def receive(self, max_length: int, mode: ReceiveMode = DEFAULT_MODE) -> bytes:
        ...


def is_peer_closed(frame: bytes) -> bool:
    """True if ``frame`` is the orderly end-of-stream result."""
    return len(frame) == 0


def iter_frames(
    source: FrameSource,
    max_length: int = DEFAULT_FRAME_SIZE,
    mode: ReceiveMode = DEFAULT_MODE,
) -> Iterator[bytes]:
    """Yield frames until the server closes the stream.

    Errors from ``source`` propagate; the empty end-of-stream frame is not
    yielded.
    """
    if mode.peek:
        raise ValueError("Peeking never consumes data; iterate without peek")
    while True:
        frame = source.receive(max_length, mode)
        if is_peer_closed(frame):
            return
        yield frame

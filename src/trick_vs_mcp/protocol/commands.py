"""Command vocabulary and line encoder for the Trick variable server.

Every command is one line of Python-call syntax evaluated by the server::

    trick.var_add("dyn.baseball.pos[0]")\\n

The encoder renders arguments, appends the newline exactly once and
refuses lines that do not fit within the verb's length limit.
String arguments are quoted but never escaped, so names, units and
tags must not contain ``"``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum

from ..config import NAMESPACE
from ..errors import EncodeOverflow

LINE_LIMIT = 512
SHORT_LINE_LIMIT = 256
TERMINATOR = "\n"


class Verb(str, Enum):
    """Server-side function names, without the namespace prefix."""

    ASCII = "var_ascii"
    BINARY = "var_binary"
    BINARY_NONAMES = "var_binary_nonames"
    SYNC = "var_sync"
    PAUSE = "var_pause"
    UNPAUSE = "var_unpause"
    ADD = "var_add"
    REMOVE = "var_remove"
    CLEAR = "var_clear"
    CYCLE = "var_cycle"
    SET_COPY_MODE = "var_set_copy_mode"
    SEND = "var_send"
    EXEC_RUN = "exec_run"
    EXEC_FREEZE = "exec_freeze"
    EXIT = "var_exit"
    VALIDATE_ADDRESS = "var_validate_address"
    REAL_TIME_ENABLE = "real_time_enable"
    REAL_TIME_DISABLE = "real_time_disable"
    DEBUG = "var_debug"
    SET_CLIENT_TAG = "var_set_client_tag"


class CopyMode(IntEnum):
    """When the server copies variable values out of the simulation."""

    ASYNC = 0
    END_OF_FRAME = 1
    FRAME_MULTIPLE = 2


# Verbs whose lines are held to the smaller limit
SHORT_VERBS = frozenset({
    Verb.VALIDATE_ADDRESS,
    Verb.REAL_TIME_ENABLE,
    Verb.REAL_TIME_DISABLE,
    Verb.DEBUG,
})


def render_argument(value: str | bool | int | float) -> str:
    """Render one argument in the server's call syntax."""
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        return f"{value:f}"
    raise TypeError(f"Unsupported argument type: {type(value).__name__}")


@dataclass(frozen=True)
class Command:
    """A single control command: a verb and its positional arguments."""

    verb: Verb
    args: tuple = ()

    @property
    def limit(self) -> int:
        return SHORT_LINE_LIMIT if self.verb in SHORT_VERBS else LINE_LIMIT

    def text(self, namespace: str = NAMESPACE) -> str:
        """Render the command without its line terminator."""
        rendered = ", ".join(render_argument(arg) for arg in self.args)
        return f"{namespace}.{self.verb.value}({rendered})"


def encode_line(text: str, limit: int = LINE_LIMIT) -> bytes:
    """Terminate a command line and check it against ``limit``.

    Raises:
        EncodeOverflow: If the terminated line is not shorter than ``limit``.
    """
    line = (text + TERMINATOR).encode("utf-8")
    if len(line) >= limit:
        raise EncodeOverflow(len(line), limit)
    return line


def encode(command: Command, namespace: str = NAMESPACE) -> bytes:
    """Encode a command as one newline-terminated wire line."""
    return encode_line(command.text(namespace), command.limit)


def build_ascii() -> Command:
    """Select ASCII reply frames."""
    return Command(Verb.ASCII)


def build_binary() -> Command:
    """Select binary reply frames."""
    return Command(Verb.BINARY)


def build_binary_nonames() -> Command:
    """Select binary reply frames without variable names."""
    return Command(Verb.BINARY_NONAMES)


def build_sync() -> Command:
    return Command(Verb.SYNC, (1,))


def build_pause() -> Command:
    return Command(Verb.PAUSE)


def build_unpause() -> Command:
    return Command(Verb.UNPAUSE)


def build_add_variable(name: str, units: str | None = None) -> Command:
    """Subscribe to a variable, optionally converted to ``units``."""
    if units is None:
        return Command(Verb.ADD, (name,))
    return Command(Verb.ADD, (name, units))


def build_remove_variable(name: str) -> Command:
    return Command(Verb.REMOVE, (name,))


def build_clear() -> Command:
    return Command(Verb.CLEAR)


def build_cycle(period: float) -> Command:
    """Set the update period.

    Args:
        period: Seconds between reply frames, greater than zero.
    """
    period = float(period)
    if not period > 0:
        raise ValueError(f"Cycle period must be positive, got {period}")
    return Command(Verb.CYCLE, (period,))


def build_copy_mode(mode: CopyMode | int) -> Command:
    """Set the copy mode.

    Args:
        mode: 0 (asynchronous), 1 (end of execution frame) or
            2 (every N frames).
    """
    try:
        mode = CopyMode(mode)
    except ValueError:
        raise ValueError(f"Copy mode must be 0, 1 or 2, got {mode}") from None
    return Command(Verb.SET_COPY_MODE, (int(mode),))


def build_poll() -> Command:
    """Request one reply frame immediately."""
    return Command(Verb.SEND)


def build_run() -> Command:
    return Command(Verb.EXEC_RUN)


def build_freeze() -> Command:
    return Command(Verb.EXEC_FREEZE)


def build_exit() -> Command:
    """Tell the server this client is leaving."""
    return Command(Verb.EXIT)


def build_validate_addresses(validate: bool) -> Command:
    return Command(Verb.VALIDATE_ADDRESS, (bool(validate),))


def build_real_time(enabled: bool) -> Command:
    return Command(Verb.REAL_TIME_ENABLE if enabled else Verb.REAL_TIME_DISABLE)


def build_debug(level: int) -> Command:
    return Command(Verb.DEBUG, (int(level),))


def build_client_tag(tag: str) -> Command:
    return Command(Verb.SET_CLIENT_TAG, (tag,))

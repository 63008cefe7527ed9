"""Client for the Trick simulation variable server, with an MCP front end."""

from .client import VariableServerClient
from .errors import (
    ConnectFailed,
    CreateFailed,
    EncodeOverflow,
    InvalidAddress,
    ReceiveFailed,
    SendFailed,
    SessionStateError,
    ShutdownFailed,
    VariableServerError,
)
from .protocol import Command, CopyMode, ReceiveMode, Verb, encode
from .transport import SessionState, VariableServerConnection, open_session

__version__ = "0.1.0"

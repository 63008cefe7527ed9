"""Exception hierarchy for the variable server client.

Every failure names the step that failed. Nothing in this package retries;
callers decide whether to reconnect, resend or give up.
"""

from __future__ import annotations


class VariableServerError(Exception):
    """Base class for all errors raised by this package."""


class SessionStateError(VariableServerError):
    """An operation was attempted in the wrong session state.

    This is a usage error (e.g. sending before ``connect`` or after
    ``shutdown``), not a transport or protocol failure.
    """


class CreateFailed(VariableServerError):
    """The transport endpoint could not be allocated."""


class ConnectFailed(VariableServerError):
    """The connection to the variable server could not be established."""


class InvalidAddress(ConnectFailed):
    """The host is not an IPv4 dotted-quad literal."""


class EncodeOverflow(VariableServerError):
    """A command line does not fit within its length limit.

    Raised before any I/O takes place.
    """

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(
            f"Command line is {length} bytes, must be shorter than {limit}"
        )
        self.length = length
        self.limit = limit


class SendFailed(VariableServerError):
    """The transport rejected a send."""


class ReceiveFailed(VariableServerError):
    """The transport failed while receiving."""


class ShutdownFailed(VariableServerError):
    """The transport could not be shut down."""

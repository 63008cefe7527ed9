"""Transport layer: TCP session to the variable server."""

from .tcp_connection import SessionState, VariableServerConnection, open_session

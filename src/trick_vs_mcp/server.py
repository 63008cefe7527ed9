"""MCP server entry point for the Trick variable server client.

Exposes the client's commands as tools via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import VariableServerClient
from .config import ServerProfile
from .protocol.framing import ReceiveMode
from .transport.tcp_connection import open_session

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "trick-variable-server",
    instructions="Control a running Trick simulation through its variable server",
)

# Global session state
_client: VariableServerClient | None = None
_profile = ServerProfile()


def _get_client() -> VariableServerClient:
    """Get the active client, raising if not connected."""
    if _client is None or not _client.connection.connected:
        raise RuntimeError(
            "Not connected to a variable server. Use the 'connect' tool first."
        )
    return _client


def _sent(command: str, written: int) -> dict[str, Any]:
    return {"command": command, "bytes_sent": written}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(host: str | None = None, port: int | None = None) -> dict[str, Any]:
    """Connect to a Trick variable server.

    Args:
        host: IPv4 address of the simulation host (default from TRICK_VS_HOST
            or 127.0.0.1).
        port: Variable server port (default from TRICK_VS_PORT).
    """
    global _client
    if _client is not None and _client.connection.connected:
        host_, port_ = _client.connection.peer
        return {"connected": True, "message": "Already connected", "host": host_, "port": port_}

    host = host or _profile.host
    port = port if port is not None else _profile.port
    if port is None:
        return {"error": "No port given and TRICK_VS_PORT is not set"}

    session = open_session()
    try:
        session.connect(host, port)
    except Exception:
        session.close()
        raise
    _client = VariableServerClient(session)
    return {"connected": True, "host": host, "port": port}


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Send var_exit to the server and close the connection."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.exit()
    _client = None
    return {"disconnected": True}


@mcp.tool()
def shutdown() -> dict[str, bool]:
    """Shut the connection down without sending var_exit."""
    global _client
    client = _get_client()
    try:
        client.connection.shutdown()
    finally:
        client.close()
        _client = None
    return {"shutdown": True}


# ─── REPLY FORMAT TOOLS ───────────────────────────────────────────────

@mcp.tool()
def set_reply_mode(mode: str) -> dict[str, Any]:
    """Select the reply encoding.

    Args:
        mode: "ascii", "binary" or "binary_nonames".
    """
    client = _get_client()
    senders = {
        "ascii": client.set_ascii,
        "binary": client.set_binary,
        "binary_nonames": client.set_binary_nonames,
    }
    if mode not in senders:
        return {"error": f"Unknown mode '{mode}'. Valid: {list(senders)}"}
    return _sent(f"reply mode {mode}", senders[mode]())


@mcp.tool()
def set_synchronized() -> dict[str, Any]:
    """Switch the server to synchronized delivery."""
    return _sent("var_sync", _get_client().set_synchronized())


@mcp.tool()
def pause() -> dict[str, Any]:
    """Stop reply frames without closing the session."""
    return _sent("var_pause", _get_client().pause())


@mcp.tool()
def unpause() -> dict[str, Any]:
    """Resume reply frames."""
    return _sent("var_unpause", _get_client().unpause())


# ─── VARIABLE TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def add_variable(name: str, units: str | None = None) -> dict[str, Any]:
    """Subscribe to a simulation variable.

    Args:
        name: Fully qualified variable name, e.g. "dyn.baseball.pos[0]".
        units: Optional units to convert the value to, e.g. "ft".
    """
    client = _get_client()
    if units:
        written = client.add_variable_with_units(name, units)
    else:
        written = client.add_variable(name)
    return _sent(f"var_add {name}", written)


@mcp.tool()
def remove_variable(name: str) -> dict[str, Any]:
    """Unsubscribe from a simulation variable."""
    return _sent(f"var_remove {name}", _get_client().remove_variable(name))


@mcp.tool()
def clear_variables() -> dict[str, Any]:
    """Unsubscribe from every variable."""
    return _sent("var_clear", _get_client().clear())


@mcp.tool()
def set_cycle(period: float) -> dict[str, Any]:
    """Set the update period.

    Args:
        period: Seconds between reply frames (> 0).
    """
    return _sent("var_cycle", _get_client().set_cycle(period))


@mcp.tool()
def set_copy_mode(mode: int) -> dict[str, Any]:
    """Set when values are copied out of the simulation.

    Args:
        mode: 0 asynchronous, 1 end of execution frame, 2 every N frames.
    """
    return _sent("var_set_copy_mode", _get_client().set_copy_mode(mode))


@mcp.tool()
def poll() -> dict[str, Any]:
    """Request one reply frame immediately."""
    return _sent("var_send", _get_client().poll())


# ─── SIMULATION CONTROL TOOLS ─────────────────────────────────────────

@mcp.tool()
def run() -> dict[str, Any]:
    """Put the simulation in run mode."""
    return _sent("exec_run", _get_client().run())


@mcp.tool()
def freeze() -> dict[str, Any]:
    """Put the simulation in freeze mode."""
    return _sent("exec_freeze", _get_client().freeze())


@mcp.tool()
def set_real_time(enabled: bool) -> dict[str, Any]:
    """Enable or disable real-time pacing of the simulation."""
    return _sent("real_time", _get_client().set_real_time(enabled))


@mcp.tool()
def set_validate_addresses(validate: bool) -> dict[str, Any]:
    """Enable or disable address validation on the server."""
    return _sent("var_validate_address", _get_client().set_validate_addresses(validate))


@mcp.tool()
def set_debug_level(level: int) -> dict[str, Any]:
    """Set the server's debug output level."""
    return _sent("var_debug", _get_client().set_debug_level(level))


@mcp.tool()
def set_client_tag(tag: str) -> dict[str, Any]:
    """Label this session on the server."""
    return _sent("var_set_client_tag", _get_client().set_client_tag(tag))


# ─── REPLY TOOLS ──────────────────────────────────────────────────────

@mcp.tool()
def receive_frame(
    max_length: int | None = None,
    peek: bool = False,
    wait_all: bool = False,
) -> dict[str, Any]:
    """Read one reply frame from the server.

    A frame is whatever one read returns; it may hold a partial update or
    several updates. An empty frame means the server closed the stream.

    Args:
        max_length: Maximum bytes to read (default TRICK_VS_FRAME_SIZE or 2000).
        peek: Leave the data queued for the next read.
        wait_all: Block until max_length bytes arrive or the stream ends.
    """
    client = _get_client()
    frame = client.receive_frame(
        max_length or _profile.frame_size,
        ReceiveMode(peek=peek, wait_all=wait_all),
    )
    return {
        "bytes": len(frame),
        "peer_closed": len(frame) == 0,
        "text": frame.decode("utf-8", errors="replace"),
    }


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("trick://session/status")
def resource_session_status() -> str:
    """Connection state and server address."""
    if _client is None:
        return json.dumps({"state": "unconnected"})
    peer = _client.connection.peer
    return json.dumps({
        "state": _client.connection.state.value,
        "host": peer[0] if peer else None,
        "port": peer[1] if peer else None,
        "namespace": _client.namespace,
    }, indent=2)


def main():
    """Run the MCP server over stdio."""
    global _profile
    logging.basicConfig(level=logging.INFO)
    _profile = ServerProfile.from_env()
    mcp.run()


if __name__ == "__main__":
    main()

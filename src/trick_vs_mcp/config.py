"""Connection defaults and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_HOST = "127.0.0.1"
DEFAULT_FRAME_SIZE = 2000
NAMESPACE = "trick"

ENV_HOST = "TRICK_VS_HOST"
ENV_PORT = "TRICK_VS_PORT"
ENV_FRAME_SIZE = "TRICK_VS_FRAME_SIZE"


@dataclass
class ServerProfile:
    """Where the variable server listens and how much to read per frame.

    The variable server picks its port at simulation start-up, so there is
    no default port; ``port`` stays ``None`` until the caller supplies one.
    """

    host: str = DEFAULT_HOST
    port: int | None = None
    frame_size: int = DEFAULT_FRAME_SIZE

    @classmethod
    def from_env(cls) -> ServerProfile:
        """Build a profile from ``TRICK_VS_*`` environment variables.

        Raises:
            ValueError: If a numeric variable is not an integer.
        """
        port = os.environ.get(ENV_PORT)
        frame_size = os.environ.get(ENV_FRAME_SIZE)
        return cls(
            host=os.environ.get(ENV_HOST, DEFAULT_HOST),
            port=int(port) if port else None,
            frame_size=int(frame_size) if frame_size else DEFAULT_FRAME_SIZE,
        )

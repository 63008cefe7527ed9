"""Protocol layer: command vocabulary, line encoding and receive framing."""

from .commands import Command, CopyMode, Verb, encode
from .framing import ReceiveMode, iter_frames

"""shellbridge — interactive shell sessions behind a pseudo-terminal."""

from shellbridge.cancel import CancellationToken, OperationCancelled, link
from shellbridge.input.keys import Key, KeyPress, translate_key
from shellbridge.pty.provider import LaunchError, PtyOptions
from shellbridge.session.terminal import Terminal

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "Key",
    "KeyPress",
    "LaunchError",
    "OperationCancelled",
    "PtyOptions",
    "Terminal",
    "link",
    "translate_key",
]

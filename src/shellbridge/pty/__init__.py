"""Pseudo-terminal providers.

A provider starts a child process behind a PTY and hands back a connection:
a duplex byte stream plus the means to tear the child down.
"""

from shellbridge.pty.posix import PosixPtyConnection, PosixPtyProvider
from shellbridge.pty.provider import LaunchError, PtyConnection, PtyOptions, PtyProvider

__all__ = [
    "LaunchError",
    "PosixPtyConnection",
    "PosixPtyProvider",
    "PtyConnection",
    "PtyOptions",
    "PtyProvider",
]

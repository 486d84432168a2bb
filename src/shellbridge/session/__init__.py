"""Interactive shell sessions — lifecycle control and I/O bridging."""

from shellbridge.session.bridge import LoopEnd, drain_output, pump_input
from shellbridge.session.terminal import ExitLatch, Terminal, default_shell, format_command_line

__all__ = [
    "ExitLatch",
    "LoopEnd",
    "Terminal",
    "default_shell",
    "drain_output",
    "format_command_line",
    "pump_input",
]

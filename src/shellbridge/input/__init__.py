"""Operator input — keypress capture and translation."""

from shellbridge.input.console import ConsoleKeySource, raw_mode
from shellbridge.input.keys import KEY_SEQUENCES, Key, KeyPress, KeySource, translate_key

__all__ = [
    "ConsoleKeySource",
    "KEY_SEQUENCES",
    "Key",
    "KeyPress",
    "KeySource",
    "raw_mode",
    "translate_key",
]

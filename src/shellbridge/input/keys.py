"""Keypress model and translation to terminal control sequences."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol


class Key(enum.StrEnum):
    """Named keys that map to a fixed control sequence."""

    UP = "up"
    DOWN = "down"
    RIGHT = "right"
    LEFT = "left"
    HOME = "home"
    END = "end"
    DELETE = "delete"
    INSERT = "insert"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    F1 = "f1"
    F2 = "f2"
    F3 = "f3"
    F4 = "f4"
    F5 = "f5"
    F6 = "f6"
    F7 = "f7"
    F8 = "f8"
    F9 = "f9"
    F10 = "f10"
    F11 = "f11"
    F12 = "f12"
    TAB = "tab"
    ENTER = "enter"
    BACKSPACE = "backspace"
    ESCAPE = "escape"


@dataclass(frozen=True)
class KeyPress:
    """A single captured keypress.

    ``key`` identifies named keys; ``char`` is the literal character the
    keypress produced, or ``""`` when there is none.
    """

    key: Key | None = None
    char: str = ""


class KeySource(Protocol):
    """Anything that yields discrete keypresses."""

    async def read_key(self) -> KeyPress: ...


# xterm sequences; F5-F12 skip the reserved codes 16 and 22.
KEY_SEQUENCES: dict[Key, str] = {
    Key.UP: "\x1b[A",
    Key.DOWN: "\x1b[B",
    Key.RIGHT: "\x1b[C",
    Key.LEFT: "\x1b[D",
    Key.HOME: "\x1b[H",
    Key.END: "\x1b[F",
    Key.DELETE: "\x1b[3~",
    Key.INSERT: "\x1b[2~",
    Key.PAGE_UP: "\x1b[5~",
    Key.PAGE_DOWN: "\x1b[6~",
    Key.F1: "\x1bOP",
    Key.F2: "\x1bOQ",
    Key.F3: "\x1bOR",
    Key.F4: "\x1bOS",
    Key.F5: "\x1b[15~",
    Key.F6: "\x1b[17~",
    Key.F7: "\x1b[18~",
    Key.F8: "\x1b[19~",
    Key.F9: "\x1b[20~",
    Key.F10: "\x1b[21~",
    Key.F11: "\x1b[23~",
    Key.F12: "\x1b[24~",
    Key.TAB: "\t",
    Key.ENTER: "\r",
    Key.BACKSPACE: "\x7f",
    Key.ESCAPE: "\x1b",
}


def translate_key(press: KeyPress) -> str:
    """Return the text to send to the shell for ``press``.

    Named keys use ``KEY_SEQUENCES``; anything else sends its literal
    character.  Keys with neither (or a NUL character) translate to ``""``.
    """
    if press.key is not None and press.key in KEY_SEQUENCES:
        return KEY_SEQUENCES[press.key]
    if not press.char or press.char == "\0":
        return ""
    return press.char

"""Console keypress capture.

``ConsoleKeySource`` turns the raw byte stream of a terminal in raw mode back
into ``KeyPress`` values, so the session translates keys the same way whether
they come from a real console or from a test.
"""

from __future__ import annotations

import asyncio
import codecs
import concurrent.futures
import contextlib
import logging
import os
import select
import sys
from typing import Iterator

from shellbridge.input.keys import Key, KeyPress

logger = logging.getLogger(__name__)

# How long to wait after a lone ESC before deciding it was the Escape key.
ESCAPE_TIMEOUT = 0.05
# Idle reads wake this often to notice close().
POLL_INTERVAL = 0.1

_CONTROL_KEYS: dict[str, Key] = {
    "\r": Key.ENTER,
    "\n": Key.ENTER,
    "\t": Key.TAB,
    "\x7f": Key.BACKSPACE,
    "\x08": Key.BACKSPACE,
}

# ESC [ <final>
_CSI_KEYS: dict[str, Key] = {
    "A": Key.UP,
    "B": Key.DOWN,
    "C": Key.RIGHT,
    "D": Key.LEFT,
    "H": Key.HOME,
    "F": Key.END,
}

# ESC [ <n> ~
_TILDE_KEYS: dict[str, Key] = {
    "1": Key.HOME,
    "2": Key.INSERT,
    "3": Key.DELETE,
    "4": Key.END,
    "5": Key.PAGE_UP,
    "6": Key.PAGE_DOWN,
    "15": Key.F5,
    "17": Key.F6,
    "18": Key.F7,
    "19": Key.F8,
    "20": Key.F9,
    "21": Key.F10,
    "23": Key.F11,
    "24": Key.F12,
}

# ESC O <final>
_SS3_KEYS: dict[str, Key] = {
    "P": Key.F1,
    "Q": Key.F2,
    "R": Key.F3,
    "S": Key.F4,
    "H": Key.HOME,
    "F": Key.END,
}


class ConsoleKeySource:
    """Read keypresses from a file descriptor (stdin by default).

    Reads block, so they run on a private single-thread executor.  A read
    abandoned by a cancelled ``read_key()`` keeps going, and its keypress is
    handed to the next ``read_key()`` call instead of being lost.

    The source is not closed by the sessions that use it: whoever creates
    it calls ``close()`` when done, so an idle read releases its thread.
    """

    def __init__(self, fd: int | None = None) -> None:
        self._fd = sys.stdin.fileno() if fd is None else fd
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending: list[str] = []
        self._closed = False
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="shellbridge-console"
        )
        self._inflight: concurrent.futures.Future[KeyPress] | None = None

    async def read_key(self) -> KeyPress:
        if self._closed:
            raise EOFError("console key source closed")
        if self._inflight is None:
            self._inflight = self._executor.submit(self._read_press)
        inflight = self._inflight
        # shield: a cancelled call leaves the read in flight for the next one.
        try:
            press = await asyncio.shield(asyncio.wrap_future(inflight))
        except Exception:
            self._finish(inflight)
            raise
        self._finish(inflight)
        return press

    def _finish(self, inflight: concurrent.futures.Future[KeyPress]) -> None:
        if self._inflight is inflight:
            self._inflight = None

    def _read_press(self) -> KeyPress:
        first = self._read_char()
        if first is None:
            raise EOFError("console input closed")
        if first == "\x1b":
            return self._read_escape()
        key = _CONTROL_KEYS.get(first)
        return KeyPress(key=key, char=first)

    def _read_escape(self) -> KeyPress:
        intro = self._read_char(timeout=ESCAPE_TIMEOUT)
        if intro is None:
            return KeyPress(key=Key.ESCAPE, char="\x1b")
        if intro == "O":
            final = self._read_char(timeout=ESCAPE_TIMEOUT)
            return KeyPress(key=_SS3_KEYS.get(final or ""))
        if intro == "[":
            params = ""
            while True:
                ch = self._read_char(timeout=ESCAPE_TIMEOUT)
                if ch is None:
                    return KeyPress()
                if "\x40" <= ch <= "\x7e":
                    break
                params += ch
            if ch == "~":
                return KeyPress(key=_TILDE_KEYS.get(params))
            return KeyPress(key=_CSI_KEYS.get(ch))
        # Alt+<key>: report Escape now, the key on the next read.
        self._pending.append(intro)
        return KeyPress(key=Key.ESCAPE, char="\x1b")

    def close(self) -> None:
        """Make pending and future reads fail with EOFError."""
        self._closed = True
        self._executor.shutdown(wait=False)

    def _wait_readable(self, timeout: float | None) -> bool:
        if timeout is not None:
            ready, _, _ = select.select([self._fd], [], [], timeout)
            return bool(ready)
        while not self._closed:
            ready, _, _ = select.select([self._fd], [], [], POLL_INTERVAL)
            if ready:
                return True
        raise EOFError("console key source closed")

    def _read_char(self, timeout: float | None = None) -> str | None:
        """Return the next decoded character, or None on timeout/EOF."""
        if self._pending:
            return self._pending.pop(0)
        while True:
            if self._closed:
                raise EOFError("console key source closed")
            if not self._wait_readable(timeout):
                return None
            data = os.read(self._fd, 1)
            if not data:
                return None
            text = self._decoder.decode(data)
            if text:
                self._pending.extend(text[1:])
                return text[0]


@contextlib.contextmanager
def raw_mode(fd: int | None) -> Iterator[None]:
    """Put the terminal on ``fd`` in raw mode for the duration of the block.

    Does nothing when ``fd`` is None or not a terminal.
    """
    if fd is None or not os.isatty(fd):
        yield
        return

    import termios
    import tty

    old_attrs = termios.tcgetattr(fd)
    tty.setraw(fd)
    try:
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSAFLUSH, old_attrs)
        logger.debug("Restored terminal attributes on fd %d", fd)

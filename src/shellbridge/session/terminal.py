"""Terminal — an interactive shell session behind a PTY.

A ``Terminal`` collects environment overrides and a working directory, then
``run()`` launches the platform shell, types the startup command into it and
bridges output and keystrokes until the shell exits or the session is
cancelled.
"""

from __future__ import annotations

import asyncio
import logging
import os
import platform
import threading
from typing import Callable, Mapping, Sequence

from shellbridge.cancel import CancellationToken, link
from shellbridge.input.console import ConsoleKeySource
from shellbridge.input.keys import KeySource
from shellbridge.pty.posix import PosixPtyProvider
from shellbridge.pty.provider import LaunchError, PtyConnection, PtyOptions, PtyProvider
from shellbridge.session.bridge import drain_output, pump_input

logger = logging.getLogger(__name__)

SESSION_NAME = "shellbridge"
COLS = 120
ROWS = 30


def default_shell() -> str:
    """Return the interactive shell for this platform."""
    return "pwsh.exe" if platform.system() == "Windows" else "bash"


def format_command_line(command: str, args: Sequence[str] = ()) -> str:
    """Join ``command`` and ``args`` with spaces and terminate with CR."""
    if args:
        return f"{command} {' '.join(args)}\r"
    return f"{command}\r"


class ExitLatch:
    """Invoke a callback at most once, from whichever thread gets there first."""

    def __init__(self, callback: Callable[[], None] | None) -> None:
        self._callback = callback
        self._lock = threading.Lock()
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def fire(self) -> bool:
        """Run the callback unless already fired.  Returns True on the first call."""
        with self._lock:
            if self._fired:
                return False
            self._fired = True
        if self._callback is not None:
            try:
                self._callback()
            except Exception:
                logger.exception("Error in on_exit callback")
        return True


class Terminal:
    """An interactive shell session.

    Args:
        on_terminal_output: Receives each chunk of shell output as text.
        on_user_output: Receives each translated keystroke before it is
            sent to the shell, or None to skip echoing.
        cancel: Long-lived token; cancelling it ends any running session.
        on_exit: Called once when a session ends.
        provider: PTY provider (defaults to ``PosixPtyProvider``).
        keys: Keypress source (defaults to ``ConsoleKeySource`` on stdin).
            A source passed in is left open between runs; its owner
            closes it.  The default one is closed when each run ends.

    The builder methods return ``self`` so calls can be chained::

        term = Terminal(print_output, None, app_token)
        term.with_environment("FOO", "bar").with_working_directory("/tmp")
        await term.run("ls", "-la")
    """

    def __init__(
        self,
        on_terminal_output: Callable[[str], None],
        on_user_output: Callable[[str], None] | None,
        cancel: CancellationToken | None = None,
        on_exit: Callable[[], None] | None = None,
        *,
        provider: PtyProvider | None = None,
        keys: KeySource | None = None,
    ) -> None:
        self._on_terminal_output = on_terminal_output
        self._on_user_output = on_user_output
        self._cancel = cancel
        self._on_exit = on_exit
        self._provider: PtyProvider = provider or PosixPtyProvider()
        self._keys = keys
        self._environment: dict[str, str] = {}
        self._working_directory = os.getcwd()
        self._connection: PtyConnection | None = None
        # Claimed before the first await in run(), released when it returns.
        self._active = False
        self._disposed = False

    # --- Builder ---

    def with_environment(
        self, key: str | Mapping[str, str], value: str | None = None
    ) -> Terminal:
        """Set one environment override, or merge a whole mapping.

        Later values for the same name replace earlier ones.
        """
        if isinstance(key, Mapping):
            for name, val in key.items():
                self._set_env(name, val)
        else:
            if value is None:
                raise TypeError("with_environment(key, value) requires a value")
            self._set_env(key, value)
        return self

    def _set_env(self, key: str, value: str) -> None:
        if not key:
            raise ValueError("environment variable name must be non-empty")
        self._environment[key] = value

    def with_working_directory(self, path: str | os.PathLike[str]) -> Terminal:
        """Set the shell's working directory (checked only at launch)."""
        self._working_directory = os.fspath(path)
        return self

    @property
    def environment(self) -> dict[str, str]:
        return dict(self._environment)

    @property
    def working_directory(self) -> str:
        return self._working_directory

    @property
    def running(self) -> bool:
        return self._active

    def build_options(self) -> PtyOptions:
        return PtyOptions(
            app=default_shell(),
            cwd=self._working_directory,
            name=SESSION_NAME,
            cols=COLS,
            rows=ROWS,
            argv=(),
            env=dict(self._environment),
        )

    # --- Lifecycle ---

    async def run(
        self,
        command: str,
        *args: str,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Start the shell, submit ``command args...`` and bridge I/O.

        Returns once the shell's output ends or either token is cancelled.
        Raises ``LaunchError`` if the shell could not be started.
        """
        if self._disposed:
            raise RuntimeError("Terminal has been disposed")
        if self._active:
            raise RuntimeError("Terminal is already running a session")

        self._active = True
        try:
            await self._run(command, args, cancel)
        finally:
            self._active = False

    async def _run(
        self,
        command: str,
        args: Sequence[str],
        cancel: CancellationToken | None,
    ) -> None:
        with link(self._cancel, cancel) as token:
            connection = await self._provider.spawn(self.build_options(), token)
            if self._disposed:
                connection.dispose()
                raise RuntimeError("Terminal was disposed while the shell was starting")
            self._connection = connection
            try:
                await self._send_startup(connection, format_command_line(command, args))
            except BaseException:
                self._release(connection)
                raise

            latch = ExitLatch(self._on_exit)
            console = ConsoleKeySource() if self._keys is None else None
            keys = self._keys or console
            drain = asyncio.create_task(
                drain_output(connection, token, self._on_terminal_output, latch.fire),
                name="shellbridge-output",
            )
            pump = asyncio.create_task(
                pump_input(connection, token, keys, self._on_user_output),
                name="shellbridge-input",
            )
            try:
                await asyncio.wait({drain, pump}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                # Stops whichever loop is still running; parents are untouched.
                token.cancel()
                if console is not None:
                    console.close()
                self._release(connection)
                await asyncio.gather(drain, pump, return_exceptions=True)
                latch.fire()
                logger.info("Session %s ended", SESSION_NAME)

    async def _send_startup(self, connection: PtyConnection, line: str) -> None:
        try:
            await connection.write(line.encode("utf-8"))
            await connection.flush()
        except OSError as e:
            raise LaunchError(f"Failed to send startup command: {e}") from e

    def _release(self, connection: PtyConnection | None) -> None:
        """Dispose ``connection`` unless another path already released it."""
        if connection is None or self._connection is not connection:
            return
        self._connection = None
        connection.dispose()

    def dispose(self) -> None:
        """Release the live connection, if any.  Safe to call repeatedly."""
        self._disposed = True
        self._release(self._connection)

    def __enter__(self) -> Terminal:
        return self

    def __exit__(self, *exc: object) -> None:
        self.dispose()

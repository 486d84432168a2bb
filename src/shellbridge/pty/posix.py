"""POSIX PTY provider built on ``os.openpty`` and ``subprocess.Popen``."""

from __future__ import annotations

import asyncio
import errno
import functools
import logging
import os
import signal
import struct
import subprocess
import threading
from typing import Callable

from shellbridge.cancel import CancellationToken
from shellbridge.pty.provider import LaunchError, PtyOptions

logger = logging.getLogger(__name__)


def _set_winsize(fd: int, rows: int, cols: int) -> None:
    import fcntl
    import termios

    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def _controlling_tty_hook() -> Callable[[], object]:
    """Build the child-side hook that adopts stdin (the slave) as its tty.

    preexec_fn runs between fork and exec, where another thread may hold
    the import lock or a logging lock.  The hook is a bound C call resolved
    here in the parent, so the child runs no Python code of its own.
    """
    import fcntl
    import termios

    return functools.partial(fcntl.ioctl, 0, termios.TIOCSCTTY, 0)


class PosixPtyConnection:
    """A child process attached to the slave side of a PTY.

    Reads and writes on the master fd are blocking, so they run on the
    event loop's default executor.
    """

    def __init__(self, master_fd: int, proc: subprocess.Popen) -> None:
        self._master_fd = master_fd
        self._proc = proc
        # start_new_session makes the child its own group leader.
        self._pgid = proc.pid
        self._lock = threading.Lock()
        self._disposed = False

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def exit_code(self) -> int | None:
        return self._proc.poll()

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def read(self, size: int) -> bytes:
        if self._disposed:
            return b""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_blocking, size)

    def _read_blocking(self, size: int) -> bytes:
        # The worker may start after dispose() closed the fd and its number
        # was reused by another PTY.
        if self._disposed:
            return b""
        try:
            return os.read(self._master_fd, size)
        except OSError as e:
            # Linux reports a closed slave as EIO rather than EOF.
            if e.errno == errno.EIO or self._disposed:
                return b""
            raise

    async def write(self, data: bytes) -> None:
        if self._disposed:
            raise BrokenPipeError("PTY connection is disposed")
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_all, data)

    def _write_all(self, data: bytes) -> None:
        if self._disposed:
            raise BrokenPipeError("PTY connection is disposed")
        view = memoryview(data)
        while view:
            written = os.write(self._master_fd, view)
            view = view[written:]

    async def flush(self) -> None:
        """Writes go straight to the master fd; nothing is buffered here."""

    def dispose(self) -> None:
        """Kill the child's process group, reap it and close the master fd."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True

        try:
            os.killpg(self._pgid, signal.SIGKILL)
            logger.info("Killed PTY child (pgid=%d)", self._pgid)
        except ProcessLookupError:
            logger.debug("Process group already gone: %d", self._pgid)
        except OSError as e:
            logger.warning("Error killing PTY child pgid=%d: %s", self._pgid, e)

        try:
            self._proc.wait(timeout=2)
        except subprocess.TimeoutExpired:
            logger.warning("PTY child pid=%d did not exit after SIGKILL", self._proc.pid)

        try:
            os.close(self._master_fd)
        except OSError:
            pass


class PosixPtyProvider:
    """Spawn processes behind a fresh pseudo-terminal pair."""

    async def spawn(
        self, options: PtyOptions, token: CancellationToken
    ) -> PosixPtyConnection:
        if token.cancelled:
            raise LaunchError("cancelled before the shell was started")
        if not hasattr(os, "openpty") or os.name == "nt":
            raise LaunchError("PTY sessions require a POSIX platform")

        env = {**os.environ, **options.env}
        env.setdefault("TERM", "xterm-256color")

        master_fd, slave_fd = os.openpty()
        try:
            _set_winsize(slave_fd, options.rows, options.cols)
            proc = subprocess.Popen(
                [options.app, *options.argv],
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                start_new_session=True,
                preexec_fn=_controlling_tty_hook(),
                cwd=options.cwd,
                env=env,
            )
        except (OSError, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise LaunchError(f"Failed to spawn {options.app!r}: {e}") from e
        finally:
            # Parent always closes slave fd
            os.close(slave_fd)

        logger.info(
            "PTY %s started: pid=%d cmd=%s cwd=%s",
            options.name,
            proc.pid,
            options.app,
            options.cwd,
        )
        return PosixPtyConnection(master_fd, proc)

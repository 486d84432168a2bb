"""PTY provider contract — what a session needs from a pseudo-terminal."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol

from shellbridge.cancel import CancellationToken


class LaunchError(RuntimeError):
    """The shell could not be started (or could not receive its first line)."""


@dataclass(frozen=True)
class PtyOptions:
    """Everything a provider needs to start one child process."""

    app: str
    cwd: str
    name: str = "shellbridge"
    cols: int = 120
    rows: int = 30
    argv: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)


class PtyConnection(Protocol):
    """A live child process behind a pseudo-terminal.

    ``read`` returns ``b""`` once the child side is closed.  ``dispose`` kills
    the child and releases the device; calling it again is a no-op.
    """

    async def read(self, size: int) -> bytes: ...

    async def write(self, data: bytes) -> None: ...

    async def flush(self) -> None: ...

    def dispose(self) -> None: ...

    @property
    def exit_code(self) -> int | None: ...


class PtyProvider(Protocol):
    async def spawn(
        self, options: PtyOptions, token: CancellationToken
    ) -> PtyConnection: ...

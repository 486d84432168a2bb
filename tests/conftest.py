"""Shared fakes: an in-memory PTY connection, provider and key source."""

from __future__ import annotations

import asyncio

import pytest

from shellbridge.cancel import CancellationToken
from shellbridge.input.keys import KeyPress
from shellbridge.pty.provider import PtyOptions


class FakeConnection:
    """Scripted PTY connection.

    ``feed()`` queues data (or an exception) for ``read``; writes are
    recorded.  Disposing unblocks a pending read with EOF, like a real PTY.
    """

    def __init__(self) -> None:
        self._reads: asyncio.Queue[bytes | Exception] = asyncio.Queue()
        self.written: list[bytes] = []
        self.flushes = 0
        self.dispose_count = 0
        self.write_error: Exception | None = None
        self.reads_started = 0

    def feed(self, item: bytes | Exception) -> None:
        self._reads.put_nowait(item)

    async def read(self, size: int) -> bytes:
        self.reads_started += 1
        item = await self._reads.get()
        if isinstance(item, Exception):
            raise item
        return item[:size]

    async def write(self, data: bytes) -> None:
        if self.write_error is not None:
            raise self.write_error
        self.written.append(data)

    async def flush(self) -> None:
        self.flushes += 1

    def dispose(self) -> None:
        self.dispose_count += 1
        self.feed(b"")

    @property
    def disposed(self) -> bool:
        return self.dispose_count > 0

    @property
    def exit_code(self) -> int | None:
        return 0 if self.disposed else None


class FakeProvider:
    """Hands out prepared connections, or raises ``error``."""

    def __init__(self, *connections: FakeConnection, error: Exception | None = None) -> None:
        self._connections = list(connections)
        self.error = error
        self.spawned: list[PtyOptions] = []
        self.tokens: list[CancellationToken] = []

    async def spawn(self, options: PtyOptions, token: CancellationToken) -> FakeConnection:
        self.spawned.append(options)
        self.tokens.append(token)
        if self.error is not None:
            raise self.error
        return self._connections.pop(0)


class FakeKeys:
    """Key source fed from a queue; exceptions are raised to the reader."""

    def __init__(self, *presses: KeyPress) -> None:
        self._queue: asyncio.Queue[KeyPress | Exception] = asyncio.Queue()
        self.reads_started = 0
        for press in presses:
            self.press(press)

    def press(self, item: KeyPress | Exception) -> None:
        self._queue.put_nowait(item)

    async def read_key(self) -> KeyPress:
        self.reads_started += 1
        item = await self._queue.get()
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def provider(connection: FakeConnection) -> FakeProvider:
    return FakeProvider(connection)


@pytest.fixture
def keys() -> FakeKeys:
    return FakeKeys()

"""Cancellation tokens shared between asyncio tasks and executor threads."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class OperationCancelled(Exception):
    """Raised when a wait is abandoned because its token was cancelled."""


class CancellationToken:
    """One-shot, thread-safe cancellation signal.

    A token starts out live and can be cancelled exactly once; later calls to
    ``cancel()`` are no-ops.  Interested parties either poll ``cancelled``,
    register a callback with ``add_callback()``, or ``await wait()``.

    Tokens derived with ``link()`` follow their parents one way: cancelling a
    parent cancels the child, never the reverse.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._unlinks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Cancel the token and run registered callbacks (once)."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Error in cancellation callback")

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register ``callback`` to run on cancellation.

        Runs immediately if the token is already cancelled.  Returns a
        function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)

                def _remove() -> None:
                    with self._lock:
                        if callback in self._callbacks:
                            self._callbacks.remove(callback)

                return _remove
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()

    async def wait(self) -> None:
        """Suspend until the token is cancelled."""
        if self._event.is_set():
            return
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()

        def _resolve() -> None:
            if not waiter.done():
                waiter.set_result(None)

        def _wake() -> None:
            # May run on any thread.
            if not loop.is_closed():
                loop.call_soon_threadsafe(_resolve)

        remove = self.add_callback(_wake)
        try:
            await waiter
        finally:
            remove()

    def close(self) -> None:
        """Detach from every parent this token was linked to."""
        unlinks, self._unlinks = self._unlinks, []
        for unlink in unlinks:
            unlink()

    def __enter__(self) -> CancellationToken:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def link(*parents: CancellationToken | None) -> CancellationToken:
    """Return a fresh token cancelled as soon as any parent is.

    ``None`` parents are ignored.  Use the result as a context manager (or
    call ``close()``) so the parents drop their reference to it.
    """
    child = CancellationToken()
    for parent in parents:
        if parent is None:
            continue
        child._unlinks.append(parent.add_callback(child.cancel))
    return child

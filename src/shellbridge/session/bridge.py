"""The two I/O loops that connect a PTY to its consumer and operator.

Both loops treat cancellation, end of stream and stream faults as ordinary
ways to finish: they log and return a ``LoopEnd`` instead of raising, so one
loop failing can never hang the other or crash the session.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, TypeVar

from shellbridge.cancel import CancellationToken, OperationCancelled
from shellbridge.input.keys import KeySource, translate_key
from shellbridge.pty.provider import PtyConnection

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHUNK_SIZE = 4096


class LoopEnd(enum.Enum):
    """How an I/O loop finished."""

    EOF = "eof"
    CANCELLED = "cancelled"
    ERROR = "error"


async def until_cancelled(awaitable: Awaitable[T], token: CancellationToken) -> T:
    """Await ``awaitable`` unless ``token`` is cancelled first.

    Raises ``OperationCancelled`` (and cancels the pending operation) when the
    token wins.
    """
    token.raise_if_cancelled()
    op = asyncio.ensure_future(awaitable)
    stop = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({op, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stop.cancel()
        if not op.done():
            op.cancel()
    if op not in done:
        raise OperationCancelled()
    return op.result()


async def drain_output(
    connection: PtyConnection,
    token: CancellationToken,
    on_output: Callable[[str], None],
    on_finish: Callable[[], None] | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> LoopEnd:
    """Forward PTY output to ``on_output`` until EOF, cancellation or error.

    Each chunk is decoded on its own; a multi-byte character split across
    two reads shows up as replacement characters.  ``on_finish`` runs on
    every exit path.
    """
    end = LoopEnd.CANCELLED
    try:
        while not token.cancelled:
            data = await until_cancelled(connection.read(chunk_size), token)
            if not data:
                end = LoopEnd.EOF
                break
            on_output(data.decode("utf-8", errors="replace"))
    except OperationCancelled:
        end = LoopEnd.CANCELLED
    except Exception as e:
        logger.debug("Output loop ended with error: %s", e)
        end = LoopEnd.ERROR
    finally:
        logger.debug("Output loop finished: %s", end.value)
        if on_finish is not None:
            on_finish()
    return end


async def pump_input(
    connection: PtyConnection,
    token: CancellationToken,
    keys: KeySource,
    on_echo: Callable[[str], None] | None = None,
) -> LoopEnd:
    """Send translated keypresses to the PTY until cancellation or error.

    Keys that translate to nothing are dropped.  The echo callback sees each
    translated chunk before it is written.  A write in progress is not
    interrupted by cancellation; the loop stops at its next check.
    """
    end = LoopEnd.CANCELLED
    try:
        while not token.cancelled:
            press = await until_cancelled(keys.read_key(), token)
            text = translate_key(press)
            if not text:
                continue
            if on_echo is not None:
                on_echo(text)
            await connection.write(text.encode("utf-8"))
            await connection.flush()
    except OperationCancelled:
        end = LoopEnd.CANCELLED
    except Exception as e:
        logger.debug("Input loop ended with error: %s", e)
        end = LoopEnd.ERROR
    logger.debug("Input loop finished: %s", end.value)
    return end

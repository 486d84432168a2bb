"""Tests for shellbridge.cancel (CancellationToken, link)."""

from __future__ import annotations

import asyncio
import threading

import pytest

from shellbridge.cancel import CancellationToken, OperationCancelled, link


# ---------------------------------------------------------------------------
# CancellationToken
# ---------------------------------------------------------------------------


class TestCancellationToken:
    def test_starts_live(self) -> None:
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()  # Should not raise

    def test_cancel(self) -> None:
        token = CancellationToken()
        token.cancel()
        assert token.cancelled
        with pytest.raises(OperationCancelled):
            token.raise_if_cancelled()

    def test_callbacks_run_once(self) -> None:
        token = CancellationToken()
        calls: list[int] = []
        token.add_callback(lambda: calls.append(1))
        token.cancel()
        token.cancel()
        assert calls == [1]

    def test_callback_after_cancel_runs_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        calls: list[int] = []
        token.add_callback(lambda: calls.append(1))
        assert calls == [1]

    def test_remove_callback(self) -> None:
        token = CancellationToken()
        calls: list[int] = []
        remove = token.add_callback(lambda: calls.append(1))
        remove()
        token.cancel()
        assert calls == []

    def test_failing_callback_does_not_stop_others(self) -> None:
        token = CancellationToken()
        calls: list[str] = []

        def boom() -> None:
            raise RuntimeError("boom")

        token.add_callback(boom)
        token.add_callback(lambda: calls.append("second"))
        token.cancel()
        assert calls == ["second"]

    async def test_wait_returns_after_cancel(self) -> None:
        token = CancellationToken()
        waiter = asyncio.create_task(token.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        token.cancel()
        await asyncio.wait_for(waiter, timeout=1)

    async def test_wait_on_cancelled_token_returns(self) -> None:
        token = CancellationToken()
        token.cancel()
        await asyncio.wait_for(token.wait(), timeout=1)

    async def test_cancel_from_another_thread(self) -> None:
        token = CancellationToken()
        timer = threading.Timer(0.01, token.cancel)
        timer.start()
        try:
            await asyncio.wait_for(token.wait(), timeout=2)
        finally:
            timer.join()
        assert token.cancelled

    async def test_abandoned_wait_unregisters(self) -> None:
        token = CancellationToken()
        waiter = asyncio.create_task(token.wait())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert token._callbacks == []


# ---------------------------------------------------------------------------
# link — one-directional merge
# ---------------------------------------------------------------------------


class TestLink:
    def test_either_parent_cancels_child(self) -> None:
        a, b = CancellationToken(), CancellationToken()
        child = link(a, b)
        b.cancel()
        assert child.cancelled
        assert not a.cancelled

    def test_child_cancel_does_not_reach_parents(self) -> None:
        a, b = CancellationToken(), CancellationToken()
        child = link(a, b)
        child.cancel()
        assert not a.cancelled
        assert not b.cancelled

    def test_already_cancelled_parent(self) -> None:
        a = CancellationToken()
        a.cancel()
        assert link(a, CancellationToken()).cancelled

    def test_none_parents_are_ignored(self) -> None:
        a = CancellationToken()
        child = link(None, a, None)
        assert not child.cancelled
        a.cancel()
        assert child.cancelled

    def test_no_parents(self) -> None:
        child = link()
        assert not child.cancelled
        child.cancel()
        assert child.cancelled

    def test_close_detaches_from_parents(self) -> None:
        a = CancellationToken()
        child = link(a)
        child.close()
        assert a._callbacks == []
        a.cancel()
        assert not child.cancelled

    def test_context_manager_detaches(self) -> None:
        a = CancellationToken()
        with link(a) as child:
            assert len(a._callbacks) == 1
        assert a._callbacks == []
        assert not child.cancelled

    def test_each_link_is_fresh(self) -> None:
        a = CancellationToken()
        with link(a) as first:
            first.cancel()
        with link(a) as second:
            assert not second.cancelled

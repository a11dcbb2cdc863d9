"""Tests for the cancellation token."""

from __future__ import annotations

import asyncio

import pytest

from teletext_core.cancellation.token import CancellationToken
from teletext_core.errors import CancellationError


class TestCancellationToken:
    def test_not_cancelled_initially(self) -> None:
        token = CancellationToken()
        assert not token.is_cancelled
        assert token.reason == ""

    def test_cancel(self) -> None:
        token = CancellationToken()
        assert token.cancel("user requested") is True
        assert token.is_cancelled
        assert token.reason == "user requested"

    def test_first_reason_wins(self) -> None:
        token = CancellationToken()
        token.cancel("first")
        assert token.cancel("second") is False
        assert token.reason == "first"

    def test_check_raises_when_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel("superseded")
        with pytest.raises(CancellationError) as exc_info:
            token.check()
        assert exc_info.value.reason == "superseded"

    def test_check_ok_when_not_cancelled(self) -> None:
        token = CancellationToken()
        token.check()  # Should not raise

    @pytest.mark.asyncio
    async def test_wait(self) -> None:
        token = CancellationToken()

        async def cancel_later():
            await asyncio.sleep(0.01)
            token.cancel("timeout")

        asyncio.create_task(cancel_later())
        await asyncio.wait_for(token.wait(), timeout=1.0)
        assert token.is_cancelled


class TestCancelCallbacks:
    def test_callback_receives_reason(self) -> None:
        token = CancellationToken()
        seen: list[str] = []
        token.on_cancel(seen.append)
        token.cancel("navigated away")
        token.cancel("again")
        assert seen == ["navigated away"]

    def test_callback_runs_immediately_when_cancelled(self) -> None:
        token = CancellationToken()
        token.cancel("done")
        seen: list[str] = []
        token.on_cancel(seen.append)
        assert seen == ["done"]

    def test_remove_callback(self) -> None:
        token = CancellationToken()
        seen: list[str] = []
        remove = token.on_cancel(seen.append)
        remove()
        remove()
        token.cancel()
        assert seen == []

    def test_failing_callback_does_not_block_others(self) -> None:
        token = CancellationToken()
        seen: list[str] = []

        def broken(_reason: str) -> None:
            raise RuntimeError("boom")

        token.on_cancel(broken)
        token.on_cancel(seen.append)
        assert token.cancel("x") is True
        assert seen == ["x"]

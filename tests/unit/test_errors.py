"""Tests for the error hierarchy."""

from __future__ import annotations

import asyncio

from teletext_core.errors import (
    CancellationError,
    CoreError,
    ErrorCategory,
    InvalidArgumentError,
    OperationError,
    OperationTimeoutError,
    classify_error,
    is_cancellation,
)


class TestCoreError:
    def test_default_category(self) -> None:
        err = CoreError("boom")
        assert err.category == ErrorCategory.INTERNAL
        assert err.details == {}
        assert str(err) == "boom"

    def test_repr(self) -> None:
        err = CoreError("boom", category=ErrorCategory.OPERATION)
        assert "CoreError" in repr(err)
        assert "boom" in repr(err)


class TestCancellationError:
    def test_default_message(self) -> None:
        err = CancellationError()
        assert str(err) == "Operation cancelled"
        assert err.reason == "cancelled"
        assert err.key is None
        assert err.category == ErrorCategory.CANCELLATION

    def test_reason_and_key(self) -> None:
        err = CancellationError("superseded", key="page:500")
        assert "superseded" in str(err)
        assert err.key == "page:500"
        assert err.details == {"key": "page:500"}

    def test_is_core_error(self) -> None:
        assert isinstance(CancellationError(), CoreError)


class TestOperationError:
    def test_wraps_original(self) -> None:
        original = ValueError("bad")
        err = OperationError(original, source="on_complete")
        assert err.original is original
        assert err.__cause__ is original
        assert err.source == "on_complete"
        assert str(err) == "ValueError in on_complete: bad"

    def test_without_source(self) -> None:
        err = OperationError(RuntimeError("x"))
        assert str(err) == "RuntimeError: x"
        assert err.details == {}


class TestOtherErrors:
    def test_invalid_argument(self) -> None:
        err = InvalidArgumentError("speed must be positive", argument="speed")
        assert err.argument == "speed"
        assert err.category == ErrorCategory.INVALID_ARGUMENT

    def test_timeout(self) -> None:
        err = OperationTimeoutError(5, "fetch")
        assert str(err) == "fetch timed out after 5s"
        assert err.timeout == 5
        assert err.details == {"timeout": 5, "operation": "fetch"}


class TestClassification:
    def test_is_cancellation(self) -> None:
        assert is_cancellation(CancellationError())
        assert is_cancellation(asyncio.CancelledError())
        assert not is_cancellation(ValueError())

    def test_classify_core_errors(self) -> None:
        assert classify_error(OperationTimeoutError(1)) == ErrorCategory.TIMEOUT
        assert classify_error(CancellationError()) == ErrorCategory.CANCELLATION

    def test_classify_foreign_errors(self) -> None:
        assert classify_error(asyncio.CancelledError()) == ErrorCategory.CANCELLATION
        assert classify_error(TimeoutError()) == ErrorCategory.TIMEOUT
        assert classify_error(KeyError("k")) == ErrorCategory.OPERATION

"""Teletext core error hierarchy."""

from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import Any


class ErrorCategory(StrEnum):
    """Category of error for classification and handling."""

    CANCELLATION = "cancellation"
    OPERATION = "operation"
    INVALID_ARGUMENT = "invalid_argument"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class CoreError(Exception):
    """Base error for all teletext core exceptions."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.details: dict[str, Any] = details or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, category={self.category!r})"


class CancellationError(CoreError):
    """Operation was superseded or explicitly cancelled."""

    def __init__(self, reason: str = "cancelled", *, key: str | None = None) -> None:
        message = "Operation cancelled" if reason == "cancelled" else f"Operation cancelled: {reason}"
        details = {"key": key} if key is not None else None
        super().__init__(message, category=ErrorCategory.CANCELLATION, details=details)
        self.reason = reason
        self.key = key


class OperationError(CoreError):
    """A collaborator-supplied function failed inside a state machine tick.

    The original exception is kept on ``original`` and chained as
    ``__cause__``.
    """

    def __init__(self, original: BaseException, *, source: str = "") -> None:
        where = f" in {source}" if source else ""
        super().__init__(
            f"{type(original).__name__}{where}: {original}",
            category=ErrorCategory.OPERATION,
            details={"source": source} if source else None,
        )
        self.original = original
        self.source = source
        self.__cause__ = original


class InvalidArgumentError(CoreError):
    """An argument was rejected synchronously at call time."""

    def __init__(self, message: str, *, argument: str | None = None) -> None:
        super().__init__(message, category=ErrorCategory.INVALID_ARGUMENT)
        self.argument = argument


class OperationTimeoutError(CoreError):
    """An operation did not settle within its timeout."""

    def __init__(self, timeout: float, operation: str = "operation") -> None:
        super().__init__(
            f"{operation} timed out after {timeout}s",
            category=ErrorCategory.TIMEOUT,
            details={"timeout": timeout, "operation": operation},
        )
        self.timeout = timeout
        self.operation = operation


def is_cancellation(exc: BaseException) -> bool:
    """Whether ``exc`` signals cancellation rather than failure."""
    return isinstance(exc, (CancellationError, asyncio.CancelledError))


def classify_error(exc: BaseException) -> ErrorCategory:
    """Map any exception onto an :class:`ErrorCategory`."""
    if isinstance(exc, CoreError):
        return exc.category
    if isinstance(exc, asyncio.CancelledError):
        return ErrorCategory.CANCELLATION
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return ErrorCategory.TIMEOUT
    return ErrorCategory.OPERATION


__all__ = [
    "CancellationError",
    "CoreError",
    "ErrorCategory",
    "InvalidArgumentError",
    "OperationError",
    "OperationTimeoutError",
    "classify_error",
    "is_cancellation",
]

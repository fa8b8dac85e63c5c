"""
Client lifecycle: open until closed, closed forever.

The closure record lives in a write-once cell. The first close stores the
reason and cause; every later close reads them back as a ClosedError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

from motionsdk.errors import ClosedError, MotionError, error_type_of

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WriteOnceCell(Generic[T]):
    """Holds at most one value, set once and never replaced."""

    __slots__ = ("_value",)

    def __init__(self) -> None:
        self._value: T | None = None

    @property
    def value(self) -> T | None:
        return self._value

    @property
    def is_set(self) -> bool:
        return self._value is not None

    def set(self, value: T) -> None:
        """
        Store the value.

        Raises:
            RuntimeError: If a value is already stored.
        """
        if self._value is not None:
            raise RuntimeError("WriteOnceCell is already set")
        self._value = value


@dataclass(frozen=True)
class ClosedReason:
    """
    End-of-life record of a client.

    Attributes:
        reason: Brief, developer-readable explanation.
        cause: Error that caused the closure, None for deliberate closes.
    """

    reason: str
    cause: MotionError | None = None


class Lifecycle:
    """One-way Open -> Closed state machine."""

    def __init__(self) -> None:
        self._closed: WriteOnceCell[ClosedReason] = WriteOnceCell()

    def is_open(self) -> bool:
        return not self._closed.is_set

    @property
    def closed_reason(self) -> ClosedReason | None:
        return self._closed.value

    def closed_error(self) -> ClosedError | None:
        """ClosedError describing the stored closure, None while open."""
        closed = self._closed.value
        if closed is None:
            return None
        return ClosedError(closed.reason, closed.cause)

    def close(self, reason: str, cause: MotionError | None = None) -> ClosedError | None:
        """
        Close, or report the original closure if already closed.

        Returns:
            None on the first close. A ClosedError carrying the original
            reason and cause on every later call; nothing is overwritten.
        """
        existing = self.closed_error()
        if existing is not None:
            return existing

        self._closed.set(ClosedReason(reason=reason, cause=cause))
        if cause is None:
            logger.info("Client closed", extra={"reason": reason})
        else:
            logger.warning(
                "Client closed after error",
                extra={"reason": reason, "error_type": error_type_of(cause)},
            )
        return None

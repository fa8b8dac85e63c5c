"""
Rate limit gate: admission, overrun penalty and overrun pre-flight.

The gate never raises for limiter trouble. Admission either succeeds (after
waiting in the queue if needed) or returns QueueOverflowError / LimiterError.

Queue overflow is told apart from limiter failure by the wording of the
queue's error message. That couples the gate to the queue implementation: a
queue that words its overflow differently gets its overflows reported as
LimiterError.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from motionsdk.constants import DEFAULT_QUEUE_SIZE
from motionsdk.errors import LimiterError, QueueOverflowError, message_from_cause
from motionsdk.limiter import RateLimiterQueue

if TYPE_CHECKING:
    from collections.abc import Callable

    from motionsdk.limiter import RateLimiter

logger = logging.getLogger(__name__)

QUEUE_OVERFLOW_PATTERN = re.compile(r"number of requests reached it'?s maximum")


def is_queue_overflow(error: object) -> bool:
    """True if a queue failure reads like a full wait list."""
    return QUEUE_OVERFLOW_PATTERN.search(message_from_cause(error).lower()) is not None


@dataclass(frozen=True)
class ConsumedPointsSnapshot:
    """Read-only view of a limiter key."""

    consumed_points: int
    ms_before_next: int


@dataclass
class GateMetrics:
    """Counters for gate observability."""

    requests_admitted: int = 0
    requests_deferred: int = 0  # Waited in queue, then admitted
    queue_overflows: int = 0
    limiter_errors: int = 0
    penalties_recorded: int = 0
    penalty_failures: int = 0

    total_wait_ms: int = 0
    max_wait_ms: int = 0


class RateLimitGate:
    """
    Admission control in front of the transport.

    Usage:
        gate = RateLimitGate(request_limiter, overrun_limiter, max_queue_size=20)
        admitted = await gate.admit("user_42:requests")
        if isinstance(admitted, MotionError):
            return admitted
    """

    def __init__(
        self,
        request_limiter: RateLimiter,
        overrun_limiter: RateLimiter,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        queue: RateLimiterQueue | None = None,
        _time_fn: Callable[[], int] | None = None,
    ) -> None:
        """
        Initialize the gate.

        Args:
            request_limiter: Limiter for request admission.
            overrun_limiter: Limiter recording remote overruns.
            max_queue_size: Wait list size per key, used when no queue is given.
            queue: Prebuilt queue on top of request_limiter.
            _time_fn: Millisecond clock for wait-time metrics.
        """
        self.request_limiter = request_limiter
        self.overrun_limiter = overrun_limiter
        self.queue = queue or RateLimiterQueue(request_limiter, max_queue_size=max_queue_size)
        self.metrics = GateMetrics()
        self._time_fn = _time_fn

    def _now_ms(self) -> int:
        """Get current time in milliseconds."""
        if self._time_fn is not None:
            return self._time_fn()
        return int(time.monotonic() * 1000)

    async def admit(self, key: str) -> int | QueueOverflowError | LimiterError:
        """
        Acquire one request token for `key`, waiting in the queue if needed.

        Returns:
            Points remaining in the window on success, QueueOverflowError if
            the wait list is full, LimiterError for any other limiter failure.
        """
        start_ms = self._now_ms()
        try:
            remaining = await self.queue.remove_tokens(1, key)
        except Exception as e:
            if is_queue_overflow(e):
                self.metrics.queue_overflows += 1
                logger.warning(
                    "Admission queue full, request rejected",
                    extra={"limiter_key": key, "queue_max": self.queue.max_queue_size},
                )
                return QueueOverflowError(self.queue, e, key)

            self.metrics.limiter_errors += 1
            logger.warning(
                "Request limiter failed",
                extra={"limiter_key": key, "error": message_from_cause(e)},
            )
            return LimiterError(self.request_limiter, e, key)

        waited_ms = self._now_ms() - start_ms
        self.metrics.requests_admitted += 1
        if waited_ms > 0:
            self.metrics.requests_deferred += 1
            self.metrics.total_wait_ms += waited_ms
            self.metrics.max_wait_ms = max(self.metrics.max_wait_ms, waited_ms)
            logger.debug("Request admitted after waiting", extra={"waited_ms": waited_ms})
        return remaining

    async def penalize(self, key: str) -> LimiterError | None:
        """Force-consume one overrun point for `key`."""
        try:
            await self.overrun_limiter.penalty(key, 1)
        except Exception as e:
            self.metrics.penalty_failures += 1
            logger.error(
                "Failed to record overrun",
                extra={"limiter_key": key, "error": message_from_cause(e)},
            )
            return LimiterError(self.overrun_limiter, e, key)

        self.metrics.penalties_recorded += 1
        return None

    async def peek(self, key: str) -> ConsumedPointsSnapshot | LimiterError:
        """Read overrun consumption for `key` without changing it."""
        try:
            res = await self.overrun_limiter.get(key)
        except Exception as e:
            return LimiterError(self.overrun_limiter, e, key)

        if res is None:
            return ConsumedPointsSnapshot(consumed_points=0, ms_before_next=0)
        return ConsumedPointsSnapshot(
            consumed_points=res.consumed_points,
            ms_before_next=res.ms_before_next,
        )

    def get_status(self) -> dict[str, int]:
        """Get current gate status for observability."""
        return {
            "queue_depth": self.queue.queue_depth(),
            "queue_max": self.queue.max_queue_size,
            "requests_admitted": self.metrics.requests_admitted,
            "requests_deferred": self.metrics.requests_deferred,
            "queue_overflows": self.metrics.queue_overflows,
            "limiter_errors": self.metrics.limiter_errors,
            "penalties_recorded": self.metrics.penalties_recorded,
            "penalty_failures": self.metrics.penalty_failures,
            "total_wait_ms": self.metrics.total_wait_ms,
            "max_wait_ms": self.metrics.max_wait_ms,
        }

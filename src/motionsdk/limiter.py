"""
Rate limiter and admission queue.

The client consumes these through the RateLimiter protocol, so any storage
backend (memory, Redis, a database) can be plugged in as long as consume,
penalty and get are atomic per key. MemoryRateLimiter is the in-process
default: fixed windows per key, opened by the first consume of the window.

RateLimiterQueue sits on top of a limiter and parks callers in a bounded
per-key FIFO until the limiter has room again.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from motionsdk.constants import DEFAULT_QUEUE_SIZE, RateLimits

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_KEY = "limiter"


@dataclass(frozen=True)
class RateLimiterRes:
    """
    Snapshot of a key's consumption.

    Attributes:
        consumed_points: Points consumed in the current window.
        remaining_points: Points left in the current window.
        ms_before_next: Milliseconds until the window resets.
    """

    consumed_points: int
    remaining_points: int
    ms_before_next: int


class RateLimitRejected(Exception):
    """Raised by consume() when the key has no capacity left."""

    def __init__(self, res: RateLimiterRes) -> None:
        super().__init__(f"Rate limit reached, retry in {res.ms_before_next}ms")
        self.res = res


class RateLimiterQueueError(Exception):
    """Raised by the queue when a request cannot be queued."""


class RateLimiter(Protocol):
    """Limiter capability consumed by the client."""

    points: int

    async def consume(self, key: str, points: int = 1) -> RateLimiterRes:
        """Consume points, raising RateLimitRejected when out of capacity."""
        ...

    async def penalty(self, key: str, points: int = 1) -> RateLimiterRes:
        """Consume points regardless of capacity."""
        ...

    async def get(self, key: str) -> RateLimiterRes | None:
        """Read the current window without consuming, None if there is none."""
        ...


@dataclass
class _Window:
    consumed: int
    expires_at_ms: int


@dataclass
class MemoryRateLimiter:
    """
    In-process fixed-window limiter.

    Attributes:
        points: Points allowed per window.
        duration: Window length in seconds.
    """

    points: int
    duration: float

    _windows: dict[str, _Window] = field(default_factory=dict, init=False)

    # Optional time provider for deterministic tests
    _time_fn: Callable[[], int] | None = field(default=None)

    def __post_init__(self) -> None:
        if self.points < 1:
            raise ValueError(f"points must be >= 1, got {self.points}")
        if self.duration <= 0:
            raise ValueError(f"duration must be > 0, got {self.duration}")

    @classmethod
    def from_limits(cls, limits: RateLimits) -> MemoryRateLimiter:
        return cls(points=limits.points, duration=limits.duration)

    def _now_ms(self) -> int:
        """Get current time in milliseconds."""
        if self._time_fn is not None:
            return self._time_fn()
        return int(time.monotonic() * 1000)

    def _current_window(self, key: str, now_ms: int) -> _Window | None:
        window = self._windows.get(key)
        if window is not None and now_ms >= window.expires_at_ms:
            del self._windows[key]
            return None
        return window

    def _open_window(self, key: str, now_ms: int) -> _Window:
        window = self._current_window(key, now_ms)
        if window is None:
            window = _Window(consumed=0, expires_at_ms=now_ms + int(self.duration * 1000))
            self._windows[key] = window
        return window

    def _snapshot(self, window: _Window, now_ms: int) -> RateLimiterRes:
        return RateLimiterRes(
            consumed_points=window.consumed,
            remaining_points=max(0, self.points - window.consumed),
            ms_before_next=max(0, window.expires_at_ms - now_ms),
        )

    async def consume(self, key: str, points: int = 1) -> RateLimiterRes:
        now_ms = self._now_ms()
        window = self._open_window(str(key), now_ms)
        window.consumed += points
        res = self._snapshot(window, now_ms)
        if window.consumed > self.points:
            raise RateLimitRejected(res)
        return res

    async def penalty(self, key: str, points: int = 1) -> RateLimiterRes:
        now_ms = self._now_ms()
        window = self._open_window(str(key), now_ms)
        window.consumed += points
        return self._snapshot(window, now_ms)

    async def get(self, key: str) -> RateLimiterRes | None:
        now_ms = self._now_ms()
        window = self._current_window(str(key), now_ms)
        if window is None:
            return None
        return self._snapshot(window, now_ms)

    async def delete(self, key: str) -> bool:
        """Forget a key. Returns True if it had a live window."""
        return self._windows.pop(str(key), None) is not None


@dataclass(eq=False)
class _QueuedRequest:
    """Internal representation of a parked caller."""

    tokens: int
    future: asyncio.Future[int]


class RateLimiterQueue:
    """
    Bounded FIFO admission queue on top of a RateLimiter.

    A caller that finds the limiter out of capacity is parked until the
    window resets. Once `max_queue_size` callers are parked for a key, further
    callers are rejected immediately with RateLimiterQueueError.

    Usage:
        queue = RateLimiterQueue(limiter, max_queue_size=20)
        remaining = await queue.remove_tokens(1, "user_42:requests")
    """

    def __init__(self, limiter: RateLimiter, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        if max_queue_size < 0:
            raise ValueError(f"max_queue_size must be >= 0, got {max_queue_size}")
        self.limiter = limiter
        self.max_queue_size = max_queue_size
        self._queues: dict[str, deque[_QueuedRequest]] = {}
        self._drainers: dict[str, asyncio.Task[None]] = {}

    def queue_depth(self, key: str | None = None) -> int:
        """Callers currently parked, for one key or across all keys."""
        if key is not None:
            return len(self._queues.get(str(key), ()))
        return sum(len(q) for q in self._queues.values())

    async def remove_tokens(self, tokens: int = 1, key: str | int = DEFAULT_QUEUE_KEY) -> int:
        """
        Wait until `tokens` can be consumed for `key`.

        Args:
            tokens: Points to consume.
            key: Limiter key.

        Returns:
            Points remaining in the window once granted.

        Raises:
            RateLimiterQueueError: More tokens than a window holds, or the
                wait list for this key is full.
            Exception: Whatever the limiter raised for infrastructure failures.
        """
        max_points = getattr(self.limiter, "points", None)
        if isinstance(max_points, int) and tokens > max_points:
            raise RateLimiterQueueError(
                f"Requested tokens {tokens} exceeds maximum {max_points} tokens per interval"
            )

        key = str(key)
        queue = self._queues.setdefault(key, deque())
        if queue:
            return await self._enqueue(key, tokens, delay_ms=0)

        try:
            res = await self.limiter.consume(key, tokens)
        except RateLimitRejected as rejected:
            return await self._enqueue(key, tokens, delay_ms=rejected.res.ms_before_next)
        return res.remaining_points

    async def _enqueue(self, key: str, tokens: int, delay_ms: int) -> int:
        queue = self._queues.setdefault(key, deque())
        if len(queue) >= self.max_queue_size:
            raise RateLimiterQueueError(
                f"Number of requests reached it's maximum {self.max_queue_size}"
            )

        future: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        request = _QueuedRequest(tokens=tokens, future=future)
        queue.append(request)

        drainer = self._drainers.get(key)
        if drainer is None or drainer.done():
            self._drainers[key] = asyncio.create_task(self._drain(key, delay_ms))

        logger.debug(
            "Request queued for rate limiter",
            extra={"limiter_key": key, "queue_depth": len(queue), "delay_ms": delay_ms},
        )
        try:
            return await future
        finally:
            # Cancelled callers give their slot back right away
            if request in queue:
                queue.remove(request)

    async def _drain(self, key: str, delay_ms: int) -> None:
        """Admit parked callers in order as the limiter frees up."""
        queue = self._queues[key]
        await asyncio.sleep(delay_ms / 1000)

        while queue:
            head = queue[0]
            if head.future.done():
                # Caller gave up while waiting
                queue.popleft()
                continue

            try:
                res = await self.limiter.consume(key, head.tokens)
            except RateLimitRejected as rejected:
                await asyncio.sleep(max(rejected.res.ms_before_next, 1) / 1000)
                continue
            except Exception as e:
                queue.popleft()
                if not head.future.done():
                    head.future.set_exception(e)
                continue

            queue.popleft()
            if not head.future.done():
                head.future.set_result(res.remaining_points)


def limit_with(
    queue: RateLimiterQueue,
    key: str | int = DEFAULT_QUEUE_KEY,
) -> Callable[[Callable[..., Any]], Callable[..., Awaitable[Any]]]:
    """
    Decorator: every call first waits for one token from `queue`.

    Works with plain and async functions; the wrapped function is always async.

    Usage:
        @limit_with(queue)
        async def get_user(user_id: str) -> dict: ...
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            await queue.remove_tokens(1, key)
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                return await result
            return result

        return wrapper

    return decorator

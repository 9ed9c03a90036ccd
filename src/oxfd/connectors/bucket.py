"""
Token bucket admission gate for outbound API requests.

- Lazy continuous refill: tokens are topped up on every acquisition attempt
  from the time elapsed since the last refill, never by a periodic timer
- Bursts up to capacity, then one request per 1/refill_rate ms
- Waiters are served strictly FIFO by a single drain task
- Queued acquisitions cannot be withdrawn: a cancelled waiter still consumes
  the token it is granted
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from oxfd.config import RateLimitMode, parse_rate_limit

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

# "auto" mode: burst of 10, ~29 requests per second sustained
AUTO_CAPACITY = 10
AUTO_REFILL_RATE_PER_MS = 29 / 1000


@dataclass
class TokenBucketMetrics:
    """Counters for bucket observability."""

    acquired_immediate: int = 0
    acquired_deferred: int = 0  # waited in queue, then granted
    total_wait_ms: float = 0.0
    max_wait_ms: float = 0.0
    current_queue_depth: int = 0


@dataclass
class TokenBucket:
    """
    Token bucket with a FIFO wait queue.

    Usage:
        bucket = TokenBucket(capacity=10, refill_rate=0.029)
        await bucket.acquire()  # Suspends until a token is available
        # ... issue request ...

    Time is measured in milliseconds. Tests inject _time_fn and _sleep_fn to
    drive the bucket with a fake clock.
    """

    capacity: int
    refill_rate: float  # tokens per ms

    _time_fn: Callable[[], float] | None = field(default=None)
    _sleep_fn: Callable[[float], Awaitable[None]] | None = field(default=None)

    _tokens: float = field(default=0.0, init=False)
    _last_refill_ms: float = field(default=0.0, init=False)
    _waiters: deque[asyncio.Future[None]] = field(default_factory=deque, init=False)
    _drain_task: asyncio.Task[None] | None = field(default=None, init=False)

    metrics: TokenBucketMetrics = field(default_factory=TokenBucketMetrics, init=False)

    def __post_init__(self) -> None:
        """Validate parameters and start full."""
        if isinstance(self.capacity, bool) or not isinstance(self.capacity, int):
            raise ValueError(f"capacity must be an int, got {self.capacity!r}")
        if self.capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {self.capacity}")
        if self.refill_rate <= 0:
            raise ValueError(f"refill_rate must be > 0, got {self.refill_rate}")
        self._tokens = float(self.capacity)
        self._last_refill_ms = self._now_ms()

    def _now_ms(self) -> float:
        """Get current time in milliseconds."""
        if self._time_fn is not None:
            return self._time_fn()
        return time.monotonic() * 1000

    async def _sleep(self, seconds: float) -> None:
        if self._sleep_fn is not None:
            await self._sleep_fn(seconds)
        else:
            await asyncio.sleep(seconds)

    def _refill(self, now_ms: float) -> None:
        """Add tokens for the time elapsed since the last refill."""
        elapsed_ms = now_ms - self._last_refill_ms
        if elapsed_ms > 0:
            self._tokens = min(float(self.capacity), self._tokens + elapsed_ms * self.refill_rate)
        self._last_refill_ms = now_ms

    @property
    def available_tokens(self) -> float:
        """Tokens available right now (after refill). Never exceeds capacity."""
        self._refill(self._now_ms())
        return self._tokens

    @property
    def queue_depth(self) -> int:
        """Number of callers waiting for a token."""
        return len(self._waiters)

    async def acquire(self) -> None:
        """
        Wait for one token and consume it.

        Returns immediately when nobody is queued and a token is available.
        Otherwise joins the FIFO queue; the drain task grants tokens in
        arrival order as they refill.
        """
        if not self._waiters:
            self._refill(self._now_ms())
            if self._tokens >= 1:
                self._tokens -= 1
                self.metrics.acquired_immediate += 1
                return

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        self._waiters.append(waiter)
        self.metrics.current_queue_depth = len(self._waiters)
        enqueue_ms = self._now_ms()

        # Only one drain loop runs at a time; later arrivals just queue up
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self._drain())
            self._drain_task.add_done_callback(self._on_drain_done)

        await waiter

        waited_ms = self._now_ms() - enqueue_ms
        self.metrics.acquired_deferred += 1
        self.metrics.total_wait_ms += waited_ms
        self.metrics.max_wait_ms = max(self.metrics.max_wait_ms, waited_ms)

    async def _drain(self) -> None:
        """Grant tokens to queued waiters in FIFO order until the queue is empty."""
        while self._waiters:
            self._refill(self._now_ms())
            if self._tokens >= 1:
                self._tokens -= 1
                waiter = self._waiters.popleft()
                self.metrics.current_queue_depth = len(self._waiters)
                # A cancelled waiter still spends its token
                if not waiter.done():
                    waiter.set_result(None)
                continue

            wait_ms = (1 - self._tokens) / self.refill_rate
            logger.debug(
                "Admission gate waiting for refill",
                extra={"wait_ms": round(wait_ms, 3), "queue_depth": len(self._waiters)},
            )
            await self._sleep(wait_ms / 1000)

    def _on_drain_done(self, task: asyncio.Task[None]) -> None:
        """Fail the remaining waiters if the drain loop died."""
        error = None if task.cancelled() else task.exception()
        if error is None and not task.cancelled():
            return
        # A newer drain loop already owns the queue
        if self._drain_task is not task:
            return
        if error is not None:
            logger.error(
                "Admission gate drain loop failed",
                extra={"error": str(error), "queue_depth": len(self._waiters)},
            )

        while self._waiters:
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            if error is None:
                waiter.cancel()
            else:
                waiter.set_exception(error)
        self.metrics.current_queue_depth = 0

    def get_status(self) -> dict[str, float | int]:
        """Get current bucket status for observability."""
        return {
            "available": round(self.available_tokens, 3),
            "capacity": self.capacity,
            "refill_rate_per_s": self.refill_rate * 1000,
            "queue_depth": len(self._waiters),
        }


def create_bucket(
    rate_limit: str | float,
    *,
    _time_fn: Callable[[], float] | None = None,
    _sleep_fn: Callable[[float], Awaitable[None]] | None = None,
) -> TokenBucket | None:
    """
    Build the admission gate for a rate limit option.

    Args:
        rate_limit: "auto", "none", or seconds between requests.

    Returns:
        TokenBucket, or None when rate limiting is disabled.
    """
    mode, interval_s = parse_rate_limit(rate_limit)

    if mode == RateLimitMode.NONE:
        return None
    if mode == RateLimitMode.AUTO:
        return TokenBucket(
            capacity=AUTO_CAPACITY,
            refill_rate=AUTO_REFILL_RATE_PER_MS,
            _time_fn=_time_fn,
            _sleep_fn=_sleep_fn,
        )

    assert interval_s is not None  # Type narrowing
    return TokenBucket(
        capacity=1,
        refill_rate=1 / (interval_s * 1000),
        _time_fn=_time_fn,
        _sleep_fn=_sleep_fn,
    )

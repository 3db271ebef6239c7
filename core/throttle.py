"""
Throttling primitives for outbound calls to rate-limited providers.

The HTTP-facing limiter in ``core.middleware.rate_limiting`` protects this
service from its clients; the classes here protect upstream AI providers from
this service. Both are process-local: running N workers multiplies the
effective outbound rate by N.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class AsyncTokenBucket:
    """
    Token bucket limiter for asyncio code.

    Tokens refill continuously at ``rate`` per second up to ``capacity``.
    ``acquire`` waits until enough tokens are available; waiters are served
    in arrival order.
    """

    def __init__(
        self,
        rate: float,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            rate: Tokens added per second
            capacity: Maximum burst size
            clock: Monotonic time source
            sleep: Coroutine used to wait, injectable for tests
        """
        if rate <= 0:
            raise ValueError("rate must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.rate = rate
        self.capacity = capacity
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self.capacity), self._tokens + elapsed * self.rate)
        self._updated_at = now

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    def try_acquire(self, tokens: int = 1) -> bool:
        """Take tokens without waiting. Returns False if not enough are available."""
        self._refill()
        if self._tokens >= tokens:
            self._tokens -= tokens
            return True
        return False

    async def acquire(self, tokens: int = 1) -> float:
        """
        Wait until ``tokens`` can be taken.

        Returns:
            Seconds spent waiting
        """
        if tokens > self.capacity:
            raise ValueError(f"Cannot acquire {tokens} tokens from a bucket of {self.capacity}")

        waited = 0.0
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return waited
                delay = (tokens - self._tokens) / self.rate
                await self._sleep(delay)
                waited += delay


async def run_bounded(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    max_concurrency: int,
    limiter: Optional[AsyncTokenBucket] = None,
) -> list[R]:
    """
    Run ``worker`` over ``items`` with at most ``max_concurrency`` in flight.

    When a limiter is given, each call takes one token before starting.
    Results are returned in input order. Exceptions raised by ``worker``
    propagate; callers that need per-item isolation catch inside the worker.
    """
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")

    semaphore = asyncio.Semaphore(max_concurrency)

    async def _run(item: T) -> R:
        async with semaphore:
            if limiter is not None:
                waited = await limiter.acquire()
                if waited:
                    logger.debug(f"Throttled outbound call for {waited:.2f}s")
            return await worker(item)

    return list(await asyncio.gather(*(_run(item) for item in items)))

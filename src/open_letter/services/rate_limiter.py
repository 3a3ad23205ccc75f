"""Process-wide throttle for outbound NationStates API calls.

NationStates allows 50 requests per 30 seconds per client and answers 429
with a ``Retry-After`` header when that budget is exceeded. The
:class:`RateLimiter` serializes every outbound call through a single FIFO
queue so that:

- only one call is in flight at a time,
- consecutive calls are spaced by at least ``min_interval`` seconds,
- a 429 puts the whole queue on hold for the advertised delay and the
  affected call is requeued at the tail instead of failing.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeVar

from open_letter.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Clock(Protocol):
    """Time source used by the limiter; swapped for a fake in tests."""

    def monotonic(self) -> float:
        """Return a monotonically increasing time in seconds."""

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for ``seconds``."""


class MonotonicClock:
    """Wall clock backed by :func:`time.monotonic` and :func:`asyncio.sleep`."""

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class RateLimitSignal(Exception):
    """Mixin base for errors that mean "upstream asked us to slow down".

    ``retry_after`` is the requested delay in seconds, or ``None`` when the
    upstream did not provide a usable value.
    """

    retry_after: float | None = None


@dataclass
class _PendingCall:
    call: Callable[[], Awaitable[Any]]
    label: str
    future: asyncio.Future[Any]
    attempts: int = field(default=0)


def _label_for_log(label: str) -> str:
    # Query strings carry checksums and tokens; keep them out of the logs.
    return label.split("?", 1)[0]


class RateLimiter:
    """Single-slot FIFO limiter with a minimum spacing and back-off override."""

    def __init__(
        self,
        min_interval: float = 0.7,
        *,
        backoff_multiplier: float = 5.0,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            min_interval: Minimum seconds between two completed calls.
            backoff_multiplier: Multiple of ``min_interval`` used when a 429
                arrives without a usable ``Retry-After``.
            clock: Time source; defaults to :class:`MonotonicClock`.
        """
        self.min_interval = max(0.0, float(min_interval))
        self.backoff_multiplier = max(1.0, float(backoff_multiplier))
        self.clock: Clock = clock or MonotonicClock()
        self._queue: deque[_PendingCall] = deque()
        self._worker: asyncio.Task[None] | None = None
        self._last_completed: float | None = None
        self._next_available = 0.0
        self._override_delay = 0.0
        self._override_set_at = 0.0

    @property
    def pending(self) -> int:
        """Number of calls waiting for their turn."""
        return len(self._queue)

    @property
    def override_delay(self) -> float:
        """Back-off delay currently in force, 0.0 when none."""
        return self._override_delay

    async def throttle(self, call: Callable[[], Awaitable[T]], label: str) -> T:
        """Run ``call`` once the limiter grants it a slot.

        Args:
            call: Zero-argument coroutine function performing the request.
            label: Request description for diagnostics (usually the URL).

        Returns:
            Whatever ``call`` returns.

        Raises:
            Exception: Any error raised by ``call`` other than a rate-limit
                signal, which is retried transparently instead.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        self._queue.append(_PendingCall(call=call, label=label, future=future))
        self._ensure_worker()
        return await future

    def reset(self) -> None:
        """Drop all state and pending calls; intended for tests."""
        while self._queue:
            pending = self._queue.popleft()
            if not pending.future.done():
                pending.future.cancel()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
        self._worker = None
        self._last_completed = None
        self._next_available = 0.0
        self._override_delay = 0.0
        self._override_set_at = 0.0
        logger.debug("Rate limiter reset")

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._drain())

    async def _drain(self) -> None:
        while self._queue:
            pending = self._queue.popleft()
            if pending.future.done():
                # Caller gave up while waiting in the queue.
                continue
            try:
                await self._issue(pending)
            except asyncio.CancelledError:
                pending.future.cancel()
                raise

    def _compute_wait(self, now: float) -> float:
        waits = [0.0, self._next_available - now]
        if self._last_completed is not None:
            waits.append(self.min_interval - (now - self._last_completed))
        if self._override_delay > 0:
            waits.append(self._override_set_at + self._override_delay - now)
        return max(waits)

    def _backoff_delay(self, retry_after: float | None) -> float:
        if retry_after is None or not math.isfinite(retry_after) or retry_after <= 0:
            return self.min_interval * self.backoff_multiplier
        return float(retry_after)

    async def _issue(self, pending: _PendingCall) -> None:
        wait = self._compute_wait(self.clock.monotonic())
        if wait > 0:
            logger.debug(
                "Throttling %s for %.3fs before next call",
                _label_for_log(pending.label),
                wait,
            )
            await self.clock.sleep(wait)

        interval_used = self._override_delay or self.min_interval
        pending.attempts += 1
        try:
            result = await pending.call()
        except RateLimitSignal as exc:
            self._override_delay = self._backoff_delay(exc.retry_after)
            self._override_set_at = self.clock.monotonic()
            logger.warning(
                "Upstream rate limit hit for %s (attempt %d); retrying after %.3fs",
                _label_for_log(pending.label),
                pending.attempts,
                self._override_delay,
            )
            self._queue.append(pending)
            return
        except Exception as exc:  # noqa: BLE001 - handed to the awaiting caller
            # A failed call still went out; the next one keeps its distance.
            self._last_completed = self.clock.monotonic()
            self._next_available = self._last_completed + interval_used
            if not pending.future.done():
                pending.future.set_exception(exc)
            return

        self._last_completed = self.clock.monotonic()
        self._override_delay = 0.0
        self._next_available = self._last_completed + interval_used
        if not pending.future.done():
            pending.future.set_result(result)


class _RateLimiterSingleton:
    """Singleton wrapper for the process-wide RateLimiter."""

    _instance: RateLimiter | None = None

    @classmethod
    def get_instance(cls) -> RateLimiter:
        """Get or create the singleton RateLimiter instance."""
        if cls._instance is None:
            cls._instance = RateLimiter(
                settings.ns_min_request_interval_seconds,
                backoff_multiplier=settings.ns_backoff_multiplier,
            )
        return cls._instance


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide rate limiter."""
    return _RateLimiterSingleton.get_instance()

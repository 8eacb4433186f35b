"""Admission control for outbound source lookups.

The :class:`AdmissionGovernor` enforces two independent limits before a unit
of outbound work may start:

- a rate limit of at most ``requests_per_minute`` grants within any trailing
  window of ``window_seconds``; when the budget is spent, callers wait until
  the oldest grant leaves the window plus a small safety buffer;
- a concurrency limit of at most ``max_concurrent`` permits in flight;
  further callers queue in arrival order and are woken one at a time as
  permits are released.

A governor is an ordinary object: build one per process (or per test) and
pass it to the adapters that need it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Deque, Dict, Optional

from uio9.core.data_models import GovernorState
from uio9.core.errors import GovernorOverloadedError

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_MINUTE = 30
DEFAULT_MAX_CONCURRENT = 2
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_BUFFER_SECONDS = 1.0


def _optional_float(value: Any) -> Optional[float]:
    return None if value in (None, "", 0) else float(value)


class AdmissionGovernor:
    """Grants permits under a rolling rate budget and a concurrency cap."""

    def __init__(
        self,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        buffer_seconds: float = DEFAULT_BUFFER_SECONDS,
        acquire_timeout: Optional[float] = None,
    ) -> None:
        """Initialize the governor.

        Args:
            requests_per_minute: Grants allowed per rolling window
            max_concurrent: Permits allowed in flight at once
            window_seconds: Length of the rolling window
            buffer_seconds: Extra wait added once the window budget is spent
            acquire_timeout: Default wait limit for callers that pass no timeout
        """
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if buffer_seconds < 0:
            raise ValueError("buffer_seconds cannot be negative")
        if acquire_timeout is not None and acquire_timeout <= 0:
            raise ValueError("acquire_timeout must be positive")

        self.requests_per_minute = requests_per_minute
        self.max_concurrent = max_concurrent
        self.window_seconds = window_seconds
        self.buffer_seconds = buffer_seconds
        self.acquire_timeout = acquire_timeout
        self.logger = logging.getLogger(self.__class__.__name__)

        self._grants: Deque[float] = deque()
        self._in_flight = 0
        self._waiters: Deque[asyncio.Future] = deque()
        self._rate_lock = asyncio.Lock()

        # Statistics
        self._stats: Dict[str, float] = self._empty_stats()

    @classmethod
    def from_config(cls, config: Any) -> "AdmissionGovernor":
        """Build a governor from the ``governor`` section of a config object."""
        return cls(
            requests_per_minute=int(
                config.get("governor.requests_per_minute", DEFAULT_REQUESTS_PER_MINUTE)
            ),
            max_concurrent=int(config.get("governor.max_concurrent", DEFAULT_MAX_CONCURRENT)),
            window_seconds=float(
                config.get("governor.window_seconds", DEFAULT_WINDOW_SECONDS)
            ),
            buffer_seconds=float(
                config.get("governor.buffer_seconds", DEFAULT_BUFFER_SECONDS)
            ),
            acquire_timeout=_optional_float(config.get("governor.acquire_timeout")),
        )

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def queued(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self, timeout: Optional[float] = None) -> float:
        """Wait for a concurrency slot, then for rate budget.

        Budget is consumed as soon as the permit is granted, whether or not
        the caller's work later succeeds.  Every successful call must be
        paired with exactly one :meth:`release`.

        Args:
            timeout: Maximum seconds to wait; defaults to ``acquire_timeout``;
                ``None`` waits indefinitely

        Returns:
            Time waited in seconds

        Raises:
            GovernorOverloadedError: If ``timeout`` elapses before admission
        """
        if timeout is None:
            timeout = self.acquire_timeout
        start = time.monotonic()
        deadline = None if timeout is None else start + timeout

        await self._acquire_slot(start, deadline, timeout)
        try:
            await self._acquire_budget(start, deadline, timeout)
        except BaseException:
            self._release_slot()
            raise

        waited = time.monotonic() - start
        self._stats["requests"] += 1
        self._stats["total_wait"] += waited
        self._stats["peak_in_flight"] = max(self._stats["peak_in_flight"], self._in_flight)

        if waited > 0.1:  # Log significant waits
            self.logger.debug(
                "Permit granted after %.2fs (in_flight=%d, queued=%d)",
                waited,
                self._in_flight,
                self.queued,
            )
        return waited

    def release(self) -> None:
        """Return a permit and wake the longest-waiting caller, if any."""
        if self._in_flight <= 0:
            raise RuntimeError("release() called without a matching acquire()")
        self._release_slot()

    @asynccontextmanager
    async def permit(self, timeout: Optional[float] = None) -> AsyncIterator[float]:
        """Hold a permit for the duration of the ``async with`` block.

        The permit is released even when the block raises or is cancelled.
        """
        waited = await self.acquire(timeout)
        try:
            yield waited
        finally:
            self.release()

    async def _acquire_slot(
        self, start: float, deadline: Optional[float], timeout: Optional[float]
    ) -> None:
        if self._in_flight < self.max_concurrent and not self.queued:
            self._in_flight += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        self._stats["peak_queued"] = max(self._stats["peak_queued"], self.queued)
        try:
            if deadline is None:
                await waiter
            else:
                await asyncio.wait_for(waiter, max(0.0, deadline - time.monotonic()))
        except (asyncio.TimeoutError, asyncio.CancelledError) as exc:
            if waiter.done() and not waiter.cancelled():
                # A slot was handed over just as we gave up; pass it on
                self._release_slot()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            if isinstance(exc, asyncio.TimeoutError):
                self._stats["overloads"] += 1
                raise GovernorOverloadedError(time.monotonic() - start, timeout) from None
            raise

    async def _acquire_budget(
        self, start: float, deadline: Optional[float], timeout: Optional[float]
    ) -> None:
        if deadline is None:
            await self._rate_lock.acquire()
        else:
            try:
                await asyncio.wait_for(
                    self._rate_lock.acquire(), max(0.0, deadline - time.monotonic())
                )
            except asyncio.TimeoutError:
                self._stats["overloads"] += 1
                raise GovernorOverloadedError(time.monotonic() - start, timeout) from None

        try:
            while True:
                now = time.monotonic()
                self._prune(now)
                if len(self._grants) < self.requests_per_minute:
                    self._grants.append(now)
                    return

                wait_time = self._grants[0] + self.window_seconds - now + self.buffer_seconds
                if deadline is not None and now + wait_time > deadline:
                    self._stats["overloads"] += 1
                    raise GovernorOverloadedError(now - start, timeout)

                self.logger.info(
                    "Rate budget of %d per %.0fs spent, waiting %.2fs",
                    self.requests_per_minute,
                    self.window_seconds,
                    wait_time,
                )
                await asyncio.sleep(wait_time)
        finally:
            self._rate_lock.release()

    def _release_slot(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Hand the slot straight to the next caller; in-flight is unchanged
                waiter.set_result(None)
                return
        self._in_flight -= 1

    def _prune(self, now: float) -> None:
        """Drop grants that have left the rolling window."""
        while self._grants and now - self._grants[0] > self.window_seconds:
            self._grants.popleft()

    def snapshot(self) -> GovernorState:
        """Return the current governor state."""
        now = time.monotonic()
        self._prune(now)
        return GovernorState(
            requests_in_window=len(self._grants),
            window_started_at=self._grants[0] if self._grants else None,
            in_flight=self._in_flight,
            queued=self.queued,
            requests_per_minute=self.requests_per_minute,
            max_concurrent=self.max_concurrent,
            captured_at=now,
        )

    def get_stats(self) -> Dict[str, float]:
        """Get admission statistics.

        Returns:
            Dictionary with request count, wait times and peak usage
        """
        requests = self._stats["requests"]
        return {
            "requests": int(requests),
            "total_wait_seconds": round(self._stats["total_wait"], 3),
            "avg_wait_seconds": (
                round(self._stats["total_wait"] / requests, 3) if requests > 0 else 0
            ),
            "peak_in_flight": int(self._stats["peak_in_flight"]),
            "peak_queued": int(self._stats["peak_queued"]),
            "overloads": int(self._stats["overloads"]),
        }

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, float]:
        return {
            "requests": 0,
            "total_wait": 0.0,
            "peak_in_flight": 0,
            "peak_queued": 0,
            "overloads": 0,
        }

    def __repr__(self) -> str:
        return (
            f"AdmissionGovernor(requests_per_minute={self.requests_per_minute}, "
            f"max_concurrent={self.max_concurrent}, in_flight={self._in_flight})"
        )

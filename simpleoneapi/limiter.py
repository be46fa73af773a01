"""Request limiters: token bucket, sliding window and concurrency."""

from __future__ import annotations

import collections
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from simpleoneapi.limits import LimitType

_MAX_BACKOFF = 1.0
_INITIAL_BACKOFF = 0.01


class LimiterTimeout(TimeoutError):
    """A limiter could not grant a request within the allowed time."""


class TokenBucketLimiter:
    """A token bucket refilled at ``rate`` tokens per second holding at most ``burst``."""

    def __init__(
        self, rate: float, burst: int, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def wait(self, timeout: float | None = None) -> float:
        """Take one token, sleeping until it is available; return the time slept."""
        if self.burst < 1:
            raise ValueError(f"wait(n=1) exceeds limiter's burst {self.burst}")
        with self._lock:
            now = self._clock()
            elapsed = max(0.0, now - self._last)
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
            self._last = now
            tokens = self._tokens - 1.0
            delay = -tokens / self.rate if tokens < 0 else 0.0
            if timeout is not None and delay > timeout:
                raise LimiterTimeout("wait would exceed the timeout")
            self._tokens = tokens
        if delay > 0:
            time.sleep(delay)
        return delay


class SlidingWindowLimiter:
    """Allows at most ``max_requests`` within any ``interval`` seconds."""

    def __init__(
        self,
        max_requests: int,
        interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.interval = interval
        self._clock = clock
        self._requests: collections.deque[float] = collections.deque()
        self._lock = threading.Lock()

    def allow(self) -> bool:
        """Record and allow a request if the window has room."""
        now = self._clock()
        window_start = now - self.interval
        with self._lock:
            while self._requests and self._requests[0] < window_start:
                self._requests.popleft()
            if len(self._requests) < self.max_requests:
                self._requests.append(now)
                return True
            return False

    def wait(self, timeout: float | None = None) -> None:
        """Block until a request is allowed, or raise :class:`LimiterTimeout`."""
        deadline = None if timeout is None else time.monotonic() + timeout
        wait_time = _INITIAL_BACKOFF
        while not self.allow():
            pause = max(0.0, wait_time)
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= pause:
                    time.sleep(max(0.0, remaining))
                    raise LimiterTimeout("sliding window wait timed out")
            time.sleep(pause)
            with self._lock:
                if self._requests:
                    until_next = self._requests[0] + self.interval - self._clock()
                    if until_next < wait_time:
                        wait_time = until_next
                    else:
                        wait_time = min(wait_time * 2, _MAX_BACKOFF)


@dataclass
class Limiter:
    """A combination of the limiters configured for one key."""

    qps_limiter: TokenBucketLimiter | None = None
    qpm_limiter: SlidingWindowLimiter | None = None
    concurrency_limiter: threading.BoundedSemaphore | None = None

    def wait(self, timeout: float | None = None) -> None:
        """Wait for the rate limiter, if any."""
        if self.qps_limiter is not None:
            self.qps_limiter.wait(timeout)
        elif self.qpm_limiter is not None:
            self.qpm_limiter.wait(timeout)

    def acquire(self, timeout: float | None = None) -> None:
        """Take a concurrency slot, if limited, or raise :class:`LimiterTimeout`."""
        if self.concurrency_limiter is not None:
            if not self.concurrency_limiter.acquire(timeout=timeout):
                raise LimiterTimeout("no concurrency slot became free in time")

    def release(self) -> None:
        """Give back a concurrency slot, if limited."""
        if self.concurrency_limiter is not None:
            self.concurrency_limiter.release()


def new_limiter(limit_type: LimitType | str | None, limit: float) -> Limiter:
    """Create a limiter of ``limit_type``; an unknown type limits nothing."""
    try:
        kind = LimitType(limit_type)
    except ValueError:
        return Limiter()
    if kind is LimitType.QPS:
        return Limiter(qps_limiter=TokenBucketLimiter(limit, int(limit)))
    if kind in (LimitType.QPM, LimitType.RPM):
        return Limiter(qpm_limiter=SlidingWindowLimiter(int(limit)))
    return Limiter(concurrency_limiter=threading.BoundedSemaphore(int(limit)))


_limiters: dict[str, Limiter] = {}
_limiters_lock = threading.Lock()


def get_limiter(key: str, limit_type: LimitType | str | None, limit: float) -> Limiter:
    """Return the limiter registered under ``key``, creating it on first use."""
    with _limiters_lock:
        limiter = _limiters.get(key)
        if limiter is None:
            limiter = new_limiter(limit_type, limit)
            _limiters[key] = limiter
        return limiter
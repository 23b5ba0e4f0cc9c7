import logging
import math
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RequestRateLimiter:
    """
    Thread-safe request rate limiter using the token bucket algorithm.

    Shared by all scheduler workers. Besides pacing, it can carry a cooldown
    hint: when the retry policy is built with shared_cooldown, a 429 with
    Retry-After calls defer(), which holds every worker's next request
    until the window has passed.
    """

    def __init__(
        self,
        rate: float,
        capacity: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not isinstance(rate, (int, float)) or not rate > 0:
            raise ValueError("Rate must be a positive number")
        if not isinstance(capacity, (int, float)) or not capacity >= 0:
            raise ValueError("Capacity must be a non-negative number")
        self._rate = float(rate)
        self._capacity = float(capacity)
        self._clock = clock
        self._sleep = sleep
        self._available_requests = self._capacity
        self._last_refill_time = clock()
        self._blocked_until = 0.0
        self._lock = threading.Lock()

    @classmethod
    def from_interval(cls, min_interval: float, **kwargs) -> "RequestRateLimiter":
        """Limiter that lets one request through every min_interval seconds (0 = unpaced)."""
        if min_interval <= 0:
            return cls(rate=math.inf, capacity=math.inf, **kwargs)
        return cls(rate=1.0 / min_interval, capacity=1.0, **kwargs)

    @property
    def unlimited(self) -> bool:
        return math.isinf(self._rate)

    def _refill(self):
        now = self._clock()
        elapsed = now - self._last_refill_time
        if elapsed > 0:
            new_requests_allowance = elapsed * self._rate
            self._available_requests = min(
                self._capacity, self._available_requests + new_requests_allowance
            )
            self._last_refill_time = now

    def acquire(self, requests_needed: int = 1) -> None:
        if not isinstance(requests_needed, int) or requests_needed <= 0:
            raise ValueError("requests_needed must be a positive integer")
        if requests_needed > self._capacity:
            raise ValueError(
                f"Requested requests ({requests_needed}) exceeds bucket capacity ({self._capacity})"
            )

        while True:
            with self._lock:
                now = self._clock()
                if now < self._blocked_until:
                    wait_time = self._blocked_until - now
                elif self.unlimited:
                    return
                else:
                    self._refill()
                    if self._available_requests >= requests_needed:
                        self._available_requests -= requests_needed
                        return
                    needed = requests_needed - self._available_requests
                    wait_time = needed / self._rate
            self._sleep(wait_time)

    def defer(self, seconds: float) -> None:
        """Hold all requests for at least `seconds` from now."""
        if seconds <= 0:
            return
        with self._lock:
            until = self._clock() + seconds
            if until > self._blocked_until:
                logger.debug(f"Pausing requests for {seconds:.1f}s after server rate limit")
                self._blocked_until = until

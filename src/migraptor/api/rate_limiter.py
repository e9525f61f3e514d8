"""Client-side throttling of GitLab API calls."""

import time
from typing import Callable


class RateLimiter:
    """Token bucket allowing short bursts up to one second's worth of calls.

    Args:
        requests_per_second: Sustained request rate, also the bucket size
        clock: Monotonic time source
        sleep: Function used to wait for a token
    """

    def __init__(
        self,
        requests_per_second: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if requests_per_second <= 0:
            raise ValueError('requests_per_second must be positive')

        self.rate = requests_per_second
        self.clock = clock
        self.sleep = sleep
        self.tokens = requests_per_second
        self.last_update = clock()
        self.waited = 0.0

    def _refill(self) -> None:
        now = self.clock()
        self.tokens = min(self.rate, self.tokens + (now - self.last_update) * self.rate)
        self.last_update = now

    def wait_time(self) -> float:
        """Seconds until a token is available, 0 if one is available now."""
        self._refill()
        return max(0.0, (1 - self.tokens) / self.rate)

    def acquire(self) -> None:
        """Take a token, sleeping first if the bucket is empty."""
        delay = self.wait_time()
        if delay > 0:
            self.sleep(delay)
            self.waited += delay
            self._refill()
        # The sleep may end slightly early; never go below an empty bucket
        self.tokens = max(0.0, self.tokens - 1)

"""Sliding-window admission control for token-metered providers.

Each dispatched batch reserves its estimated cost in a 60-second window.
A batch is only admitted while the trailing sum stays under the cap; when
the provider reports the real usage, the reservation is corrected in place.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass
class TokenUsageSample:
    timestamp_ms: int
    cost: int


class SlidingWindowRateLimiter:
    """Caps the sum of costs dispatched in any trailing window.

    ``acquire`` holds the lock while it waits, so check-and-reserve is atomic
    across all worker threads sharing this limiter.
    """

    def __init__(self, max_cost_per_window: int, window_seconds: float = 60.0,
                 clock=time.monotonic, sleep=time.sleep):
        if max_cost_per_window <= 0:
            raise ValueError("max_cost_per_window must be positive")
        self.max_cost = max_cost_per_window
        self.window_ms = int(window_seconds * 1000)
        self._clock = clock
        self._sleep = sleep
        self._samples: deque[TokenUsageSample] = deque()
        self._lock = threading.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _prune(self, now_ms: int):
        cutoff = now_ms - self.window_ms
        while self._samples and self._samples[0].timestamp_ms <= cutoff:
            self._samples.popleft()

    def _used(self) -> int:
        return sum(s.cost for s in self._samples)

    def acquire(self, estimated_cost: int) -> TokenUsageSample:
        """Block until *estimated_cost* fits in the window, then reserve it.

        A single request above the cap is admitted once the window is empty.
        """
        with self._lock:
            now = self._now_ms()
            self._prune(now)
            while self._samples and self._used() + estimated_cost > self.max_cost:
                wait_ms = self._samples[0].timestamp_ms + self.window_ms - now
                if wait_ms > 0:
                    log.info("Rate limit: %d/%d used, waiting %.1fs",
                             self._used(), self.max_cost, wait_ms / 1000)
                    self._sleep(wait_ms / 1000)
                now = self._now_ms()
                self._prune(now)
            sample = TokenUsageSample(now, estimated_cost)
            self._samples.append(sample)
            return sample

    def record_actual(self, sample: TokenUsageSample, actual_cost: int):
        """Replace a reservation's estimate with the reported usage."""
        with self._lock:
            sample.cost = actual_cost

    def current_usage(self) -> int:
        with self._lock:
            self._prune(self._now_ms())
            return self._used()

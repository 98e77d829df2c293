"""Per-worker request pacing.

Each worker waits ``1 / requests_per_second`` plus a random jitter before every
network attempt, retries included. The limiter holds no shared clock, so the
aggregate rate of a run is roughly ``concurrency * requests_per_second``; it is
not a global token bucket.
"""

from __future__ import annotations

import random
from typing import Optional


class RateLimiter:
    def __init__(
        self,
        requests_per_second: float,
        min_jitter_ms: int = 0,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not requests_per_second > 0:
            raise ValueError("requests_per_second must be > 0")
        if min_jitter_ms < 0:
            raise ValueError("min_jitter_ms must be >= 0")
        self.requests_per_second = requests_per_second
        self.min_jitter_ms = min_jitter_ms
        self._rng = rng or random.Random()

    @property
    def base_interval(self) -> float:
        """Seconds between requests before jitter."""

        return 1.0 / self.requests_per_second

    def delay_before_next(self) -> float:
        """Return the delay (seconds) a worker must wait before its next attempt."""

        jitter_ms = self._rng.random() * self.min_jitter_ms if self.min_jitter_ms else 0.0
        return self.base_interval + jitter_ms / 1000.0

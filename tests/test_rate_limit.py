import random

import pytest

from textcheck.workflows.rate_limit import RateLimiter


def test_delay_without_jitter_is_base_interval():
    limiter = RateLimiter(requests_per_second=2.0, min_jitter_ms=0)
    assert limiter.delay_before_next() == pytest.approx(0.5)


def test_delay_jitter_stays_within_bounds():
    limiter = RateLimiter(requests_per_second=0.5, min_jitter_ms=1000, rng=random.Random(7))
    delays = [limiter.delay_before_next() for _ in range(500)]
    assert all(2.0 <= d < 3.0 for d in delays)
    # jitter actually varies
    assert len({round(d, 6) for d in delays}) > 1


def test_delay_uses_injected_rng():
    class FixedRandom(random.Random):
        def random(self):
            return 0.25

    limiter = RateLimiter(requests_per_second=1.0, min_jitter_ms=400, rng=FixedRandom())
    assert limiter.delay_before_next() == pytest.approx(1.1)


@pytest.mark.parametrize("rps,jitter", [(0, 0), (-1, 0), (1, -5)])
def test_invalid_limiter_settings(rps, jitter):
    with pytest.raises(ValueError):
        RateLimiter(requests_per_second=rps, min_jitter_ms=jitter)

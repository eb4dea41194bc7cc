import math
import threading

import pytest

from quest_translator.rate_limiter import SlidingWindowRateLimiter


def make_limiter(clock, cap=100):
    return SlidingWindowRateLimiter(cap, clock=clock, sleep=clock.sleep)


def test_under_cap_does_not_wait(clock):
    limiter = make_limiter(clock)
    limiter.acquire(40)
    limiter.acquire(50)
    assert clock.sleeps == []
    assert limiter.current_usage() == 90


def test_over_cap_waits_for_oldest_sample(clock):
    limiter = make_limiter(clock)
    limiter.acquire(60)
    clock.now = 10.0
    limiter.acquire(60)
    assert clock.sleeps == [50.0]
    assert limiter.current_usage() == 60


def test_oversized_request_admitted_on_empty_window(clock):
    limiter = make_limiter(clock)
    sample = limiter.acquire(500)
    assert clock.sleeps == []
    assert sample.cost == 500


def test_actual_cost_replaces_estimate(clock):
    limiter = make_limiter(clock)
    sample = limiter.acquire(80)
    limiter.record_actual(sample, 10)
    limiter.acquire(80)
    assert clock.sleeps == []
    assert limiter.current_usage() == 90


def test_samples_leave_the_window(clock):
    limiter = make_limiter(clock)
    limiter.acquire(70)
    clock.now = 61.0
    assert limiter.current_usage() == 0


def test_sustained_load_blocks_for_whole_minutes(clock):
    limiter = make_limiter(clock, cap=100)
    n, cost = 5, 50
    for _ in range(n):
        limiter.acquire(cost)
    minutes = clock.now / 60
    assert minutes >= math.ceil(n * cost / 100 - 1)
    assert clock.sleeps == [60.0, 60.0]


def test_cap_must_be_positive():
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(0)


def test_concurrent_acquires_never_exceed_cap(clock):
    limiter = make_limiter(clock, cap=100)
    samples = []
    samples_lock = threading.Lock()
    start = threading.Barrier(8)

    def worker():
        start.wait()
        for _ in range(5):
            sample = limiter.acquire(30)
            with samples_lock:
                samples.append(sample)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(samples) == 40
    window_ms = limiter.window_ms
    for s in samples:
        in_window = sum(o.cost for o in samples
                        if s.timestamp_ms - window_ms < o.timestamp_ms <= s.timestamp_ms)
        assert in_window <= 100

import threading

import pytest

from watchsync.backend.network_handlers.rate_limiter import RateLimiter


class ManualClock:
    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_first_slot_is_granted_immediately():
    clock = ManualClock()
    limiter = RateLimiter(0.05, clock=clock, sleep=clock.sleep)

    assert limiter.wait_for_slot() == 100.0
    assert clock.sleeps == []


def test_back_to_back_slots_are_spaced():
    clock = ManualClock()
    limiter = RateLimiter(0.05, clock=clock, sleep=clock.sleep)

    first = limiter.wait_for_slot()
    clock.now += 0.01
    second = limiter.wait_for_slot()

    assert clock.sleeps == [pytest.approx(0.04)]
    assert second - first == pytest.approx(0.05)


def test_no_wait_once_interval_has_passed():
    clock = ManualClock()
    limiter = RateLimiter(0.05, clock=clock, sleep=clock.sleep)

    limiter.wait_for_slot()
    clock.now += 0.2
    limiter.wait_for_slot()

    assert clock.sleeps == []


def test_concurrent_callers_get_distinct_slots():
    stamps = []
    lock = threading.Lock()
    limiter = RateLimiter(0.02)

    def worker():
        slot = limiter.wait_for_slot()
        with lock:
            stamps.append(slot)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stamps.sort()
    gaps = [b - a for a, b in zip(stamps, stamps[1:])]
    assert all(gap >= 0.019 for gap in gaps)


def test_from_config_reads_milliseconds():
    assert RateLimiter.from_config({"min_interval_ms": 250}).min_interval == pytest.approx(0.25)
    assert RateLimiter.from_config({}).min_interval == pytest.approx(0.05)


def test_negative_interval_is_rejected():
    with pytest.raises(ValueError):
        RateLimiter(-1)

from __future__ import annotations

from chiefsnews.api.ratelimit import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_limit_applies_per_client_within_window() -> None:
    clock = FakeClock()
    limiter = RateLimiter(2, window_seconds=60, clock=clock)

    assert [limiter.hit("10.0.0.1") for _ in range(3)] == [True, True, False]
    assert limiter.hit("10.0.0.2") is True

    clock.now = 60
    assert limiter.hit("10.0.0.1") is True


def test_idle_clients_are_forgotten_after_window() -> None:
    clock = FakeClock()
    limiter = RateLimiter(5, window_seconds=60, clock=clock)
    for index in range(1000):
        limiter.hit(f"10.0.{index // 256}.{index % 256}")
    assert limiter.tracked_clients == 1000

    clock.now = 61
    limiter.hit("192.168.1.1")

    assert limiter.tracked_clients == 1


def test_active_clients_survive_sweep() -> None:
    clock = FakeClock()
    limiter = RateLimiter(2, window_seconds=60, clock=clock)
    limiter.hit("idle")
    clock.now = 30
    limiter.hit("busy")
    limiter.hit("busy")

    clock.now = 65
    assert limiter.hit("busy") is False
    assert limiter.tracked_clients == 1

    clock.now = 90
    assert limiter.hit("busy") is True

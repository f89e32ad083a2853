import time

import pytest
from unittest.mock import patch, MagicMock

from translation_pipeline.services import rate_limiter as rate_limiter_module
from translation_pipeline.services.rate_limiter import RateLimiter, get_rate_limiter, reset_rate_limiter


class _FakeTime:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_first_slot_is_immediate():
    fake = _FakeTime()
    limiter = RateLimiter(min_interval=0.2, clock=fake.clock, sleep=fake.sleep)

    await limiter.await_slot()

    assert fake.sleeps == []
    assert limiter.last_dispatch == 0.0


@pytest.mark.asyncio
async def test_back_to_back_slots_are_spaced_by_min_interval():
    fake = _FakeTime()
    limiter = RateLimiter(min_interval=0.2, clock=fake.clock, sleep=fake.sleep)

    await limiter.await_slot()
    await limiter.await_slot()
    await limiter.await_slot()

    assert fake.sleeps == pytest.approx([0.2, 0.2])
    assert limiter.last_dispatch == pytest.approx(0.4)


@pytest.mark.asyncio
async def test_no_wait_once_interval_has_elapsed():
    fake = _FakeTime()
    limiter = RateLimiter(min_interval=0.2, clock=fake.clock, sleep=fake.sleep)

    await limiter.await_slot()
    fake.now += 0.5
    await limiter.await_slot()

    assert fake.sleeps == []


@pytest.mark.asyncio
async def test_partial_wait_covers_only_remaining_interval():
    fake = _FakeTime()
    limiter = RateLimiter(min_interval=0.2, clock=fake.clock, sleep=fake.sleep)

    await limiter.await_slot()
    fake.now += 0.15
    await limiter.await_slot()

    assert fake.sleeps == pytest.approx([0.05])


@pytest.mark.asyncio
async def test_early_timer_wakeup_sleeps_again():
    fake = _FakeTime()
    wakeups = iter([0.19, 0.05])

    async def early_sleep(seconds: float) -> None:
        fake.sleeps.append(seconds)
        fake.now += next(wakeups)

    limiter = RateLimiter(min_interval=0.2, clock=fake.clock, sleep=early_sleep)
    await limiter.await_slot()
    await limiter.await_slot()

    assert len(fake.sleeps) == 2
    assert fake.now >= 0.2


@pytest.mark.asyncio
async def test_real_clock_spacing():
    limiter = RateLimiter(min_interval=0.05)
    stamps = []
    for _ in range(3):
        await limiter.await_slot()
        stamps.append(time.monotonic())

    gaps = [later - earlier for earlier, later in zip(stamps, stamps[1:])]
    assert all(gap >= 0.045 for gap in gaps)


def test_singleton_reads_interval_from_settings():
    reset_rate_limiter()
    try:
        with patch.object(rate_limiter_module, "get_settings") as mock_settings:
            mock_settings.return_value = MagicMock(translation_min_request_interval_seconds=0.75)
            limiter = get_rate_limiter()
            assert limiter.min_interval == 0.75
            assert get_rate_limiter() is limiter
    finally:
        reset_rate_limiter()

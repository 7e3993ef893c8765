"""Unit tests for the NVD rate limiter."""

import pytest

from source_client.app.models import RateLimiterState
from source_client.app.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(base_delay=6.5, max_delay=60.0, clock=clock, sleep=clock.sleep)


class TestCurrentDelay:
    def test_healthy_delay_is_base(self, limiter):
        assert limiter.current_delay() == 6.5

    def test_consecutive_errors_grow_strictly_until_cap(self, limiter):
        delays = []
        for _ in range(5):
            limiter.record_error()
            delays.append(limiter.current_delay())

        assert delays[:3] == [13.0, 26.0, 52.0]
        assert delays[3] == delays[4] == 60.0
        assert all(earlier < later for earlier, later in zip(delays[:3], delays[1:4]))

    def test_success_resets_error_counter(self, limiter):
        limiter.record_error()
        limiter.record_error()
        limiter.record_success()
        assert limiter.consecutive_errors == 0
        assert limiter.current_delay() == 6.5


class TestAcquire:
    @pytest.mark.asyncio
    async def test_first_request_does_not_wait(self, limiter, clock):
        await limiter.acquire()
        assert clock.sleeps == []
        assert limiter.last_request_at == clock.now

    @pytest.mark.asyncio
    async def test_waits_for_remaining_interval(self, limiter, clock):
        await limiter.acquire()
        clock.now += 2.0
        await limiter.acquire()
        assert clock.sleeps == [pytest.approx(4.5)]

    @pytest.mark.asyncio
    async def test_no_wait_when_interval_elapsed(self, limiter, clock):
        await limiter.acquire()
        clock.now += 10.0
        await limiter.acquire()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_backoff_sleeps_recomputed_delay(self, limiter, clock):
        limiter.record_error()
        delay = await limiter.backoff()
        assert delay == 13.0
        assert clock.sleeps == [13.0]

    @pytest.mark.asyncio
    async def test_mark_spaces_the_next_acquire(self, limiter, clock):
        await limiter.acquire()
        clock.now += 20.0
        limiter.mark()
        await limiter.acquire()
        assert clock.sleeps == [pytest.approx(6.5)]


class TestFromSettings:
    def test_without_key_uses_slow_delay(self, settings):
        limiter = RateLimiter.from_settings(settings)
        assert limiter.base_delay == settings.nvd_delay_without_key_seconds
        assert limiter.max_delay == settings.nvd_max_delay_seconds

    def test_with_key_uses_fast_delay(self, settings):
        keyed = settings.model_copy(update={"nvd_api_key": "secret"})
        limiter = RateLimiter.from_settings(keyed)
        assert limiter.base_delay == settings.nvd_delay_with_key_seconds


def test_state_round_trip(limiter):
    limiter.record_error()
    limiter.last_request_at = 1234.5
    state = limiter.state()

    restored = RateLimiter(base_delay=6.5)
    restored.restore(RateLimiterState.model_validate(state.model_dump(by_alias=True)))

    assert restored.consecutive_errors == 1
    assert restored.last_request_at == 1234.5

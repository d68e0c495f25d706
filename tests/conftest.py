"""Pytest configuration and shared fixtures for marketplace-http-core tests."""

import pytest


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    """Auto-cleanup: Clear marketplace-related environment variables before each test.

    This prevents test pollution when testing credential and config resolution.
    """
    import os

    # Store keys that look like test-related env vars
    test_prefixes = ("TEST_", "AMAZON_", "EBAY_", "DISCOGS_", "BANDCAMP_")

    for key in list(os.environ.keys()):
        if any(key.startswith(prefix) for prefix in test_prefixes):
            monkeypatch.delenv(key, raising=False)

    yield


class SleepRecorder:
    """Stand-in for asyncio.sleep that records each requested wait."""

    def __init__(self, clock=None):
        self.delays: list[float] = []
        self._clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self._clock is not None:
            self._clock.advance(delay)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def clocked_sleep(fake_clock):
    """Sleep recorder that also advances ``fake_clock``."""
    return SleepRecorder(clock=fake_clock)

"""Shared fixtures for relay tests."""

import pytest

from relay.app.core.kv_store import InMemoryKVStore, reset_kv_store

BASE_TIME_MS = 1_700_000_000_000  # divisible by 1e8, so request ids equal the random part


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, now: int = BASE_TIME_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FixedRandom:
    """Random source returning fixed values; ``choice`` picks the first item."""

    def __init__(self, randrange_value: int = 0):
        self.randrange_value = randrange_value

    def randrange(self, *args, **kwargs) -> int:
        return self.randrange_value

    def choice(self, seq):
        return seq[0]

    def uniform(self, a: float, b: float) -> float:
        return a


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fixed_random():
    """Factory for FixedRandom instances."""
    return FixedRandom


@pytest.fixture
def store() -> InMemoryKVStore:
    return InMemoryKVStore()


@pytest.fixture(autouse=True)
def _reset_kv_store():
    reset_kv_store()
    yield
    reset_kv_store()

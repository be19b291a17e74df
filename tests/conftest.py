import pytest

from database import memory_store
from messages import MessageStore
from presence import PresenceRegistry
from sweeper import LivenessSweeper


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return memory_store()


@pytest.fixture
def messages(store, clock):
    return MessageStore(store, clock=clock)


@pytest.fixture
def registry(store, messages, clock):
    return PresenceRegistry(store, messages, clock=clock)


@pytest.fixture
def sweeper(registry, messages, clock):
    return LivenessSweeper(registry, messages, interval=15, stale_after=10, clock=clock)

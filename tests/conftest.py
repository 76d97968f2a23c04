"""Shared fakes for relay broker tests."""

import asyncio
import json

import pytest


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class FakeObserver:
    """Observer session that records every frame it is sent."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.open = True
        self.frames = []

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_text(self, text: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("peer went away")
        self.frames.append(json.loads(text))

    def of_type(self, event_type: str) -> list:
        return [f for f in self.frames if f["type"] == event_type]


@pytest.fixture
def clock():
    return FakeClock()

import os

import pytest

os.environ["MODEL_HOST"] = "http://model.test"

from frontend.config import get_settings
from frontend.metrics import MetricsRegistry


class FakeClock:
    """Wall clock stand-in that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def parse_exposition(text: str) -> dict:
    """Map each sample's `name{labels}` to its numeric value."""
    samples = {}
    for line in text.splitlines():
        if not line or line.startswith("#"):
            continue
        series, _, value = line.rpartition(" ")
        samples[series] = float(value)
    return samples


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def registry(clock):
    return MetricsRegistry(clock=clock)

import sys
from pathlib import Path

# Ensure the backend package root is on sys.path for direct pytest runs
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

import asyncio

import pytest

PARIS = {
    "display_name": "Paris, Ile-de-France, France",
    "place_id": "1",
    "lat": "48.8566",
    "lon": "2.3522",
    "type": "city",
    "importance": 0.9,
}
LONDON = {
    "display_name": "London, Greater London, England, United Kingdom",
    "place_id": "2",
    "lat": "51.5074",
    "lon": "-0.1278",
    "type": "city",
    "importance": 0.88,
}
TOKYO = {
    "display_name": "Tokyo, Japan",
    "osm_id": 1543125,
    "lat": "35.6762",
    "lon": "139.6503",
    "type": "city",
    "importance": 0.85,
}


class FakeGeocoder:
    """Async stand-in for GeocodeClient; optional gates hold a query in flight."""

    def __init__(self, responses=None, gates=None, error=None):
        self.calls = []
        self.responses = responses or {}
        self.gates = gates or {}
        self.error = error

    async def search(self, text, limit=5):
        self.calls.append((text, limit))
        gate = self.gates.get(text)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return self.responses.get(text, [])


class RecordingMap:
    def __init__(self):
        self.regions = []

    def animate_to_region(self, region):
        self.regions.append(region)


class EventRecorder:
    def __init__(self, bus, *names):
        self.events = {name: [] for name in names}
        for name in names:
            bus.subscribe(name, self.events[name].append)

    def __getitem__(self, name):
        return self.events[name]


def make_clock(prefix="2025-08-01T12:00:"):
    counter = {"n": 0}

    def clock():
        counter["n"] += 1
        return f"{prefix}{counter['n']:02d}.000Z"

    return clock


async def wait_until(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def paris():
    return dict(PARIS)


@pytest.fixture
def london():
    return dict(LONDON)


@pytest.fixture
def tokyo():
    return dict(TOKYO)

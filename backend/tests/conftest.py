"""Pytest configuration and fixtures."""
import sys
from pathlib import Path

import pytest

# Ensure backend root is on path when running pytest from repo root or backend
backend = Path(__file__).resolve().parent.parent
if str(backend) not in sys.path:
    sys.path.insert(0, str(backend))

from src.data.geo import haversine_distance_m  # noqa: E402
from src.data.transit_graph import TransitGraph, load_graph_file  # noqa: E402
from src.directions.models import DirectionsResult  # noqa: E402
from src.errors import ProviderUnavailable  # noqa: E402

NETWORK_FILE = backend / "data" / "bus_routes.json"


class StubDirections:
    """Deterministic provider: road distance is the straight line x factor, driven at 30 km/h."""

    def __init__(self, factor: float = 1.3):
        self.factor = factor
        self.calls = []

    async def route(self, origin, destination, profile):
        self.calls.append((origin, destination, profile))
        distance = haversine_distance_m(origin[0], origin[1], destination[0], destination[1]) * self.factor
        return DirectionsResult(distance_m=distance, duration_s=distance / (30_000 / 3600))


class FailingDirections:
    """Provider that raises on every call."""

    def __init__(self, exc_type=ProviderUnavailable):
        self.exc_type = exc_type
        self.calls = 0

    async def route(self, origin, destination, profile):
        self.calls += 1
        raise self.exc_type("provider down")


@pytest.fixture
def karachi_graph() -> TransitGraph:
    """The sample network shipped in data/bus_routes.json."""
    return load_graph_file(NETWORK_FILE)


@pytest.fixture
def loop_dataset() -> dict:
    """
    One route L running s1 -> s2 -> s3 -> s4 around a rectangle near (0, 0).
    s4 sits close to s1 but comes after s3, so it can never board towards s3.
    """
    return {
        "stops": [
            {"id": "s1", "name": "South West", "lat": 0.0, "lng": 0.0},
            {"id": "s2", "name": "South East", "lat": 0.0, "lng": 0.03},
            {"id": "s3", "name": "North East", "lat": 0.01, "lng": 0.03},
            {"id": "s4", "name": "North West", "lat": 0.01, "lng": 0.001},
        ],
        "routes": [{"routeName": "L", "stops": ["s1", "s2", "s3", "s4"]}],
    }


@pytest.fixture
def loop_graph(loop_dataset) -> TransitGraph:
    return TransitGraph.load(loop_dataset)


@pytest.fixture
def transfer_dataset() -> dict:
    """
    Route A: a1 -> hub -> a3. Route B: dest -> b2 -> hub.
    dest opens route B, so no stop boards towards it in order; riders near a1
    change at hub onto B.
    """
    return {
        "stops": [
            {"id": "a1", "name": "Alpha", "lat": 0.0, "lng": 0.0},
            {"id": "hub", "name": "Hub", "lat": 0.0, "lng": 0.03},
            {"id": "a3", "name": "Alpha End", "lat": 0.0, "lng": 0.06},
            {"id": "b2", "name": "Bravo", "lat": 0.01, "lng": 0.03},
            {"id": "dest", "name": "Bravo End", "lat": 0.02, "lng": 0.03},
        ],
        "routes": [
            {"routeName": "A", "stops": ["a1", "hub", "a3"]},
            {"routeName": "B", "stops": ["dest", "b2", "hub"]},
        ],
    }


@pytest.fixture
def transfer_graph(transfer_dataset) -> TransitGraph:
    return TransitGraph.load(transfer_dataset)


@pytest.fixture
def terminus_graph() -> TransitGraph:
    """Two stops on one route; nothing can board towards the first stop x1."""
    return TransitGraph.load(
        {
            "stops": [
                {"id": "x1", "name": "Terminus", "lat": 0.0, "lng": 0.0},
                {"id": "x2", "name": "Second", "lat": 0.0, "lng": 0.01},
            ],
            "routes": [{"routeName": "X", "stops": ["x1", "x2"]}],
        }
    )


@pytest.fixture
def stub_directions() -> StubDirections:
    return StubDirections()


@pytest.fixture
def failing_directions() -> FailingDirections:
    return FailingDirections()

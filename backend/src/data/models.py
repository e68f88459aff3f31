"""Domain records for the BRT network and planned journeys. All immutable."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from src.data.geo import TravelMode

DEFAULT_ROUTE_COLOR = "#E53E3E"


@dataclass(frozen=True)
class Stop:
    id: str
    name: str
    lat: float
    lng: float
    routes: frozenset[str] = field(default_factory=frozenset, compare=False)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Stop):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.lat, self.lng)


@dataclass(frozen=True)
class BusRoute:
    name: str
    stops: tuple[Stop, ...]
    color: str = DEFAULT_ROUTE_COLOR


class Candidate(NamedTuple):
    stop: Stop
    local_distance_m: float


class DistanceSource(str, Enum):
    MEASURED = "MEASURED"  # provider answer
    ESTIMATED = "ESTIMATED"  # haversine x road factor
    COINCIDENT = "COINCIDENT"  # endpoints within a metre; zero with no provider call


@dataclass(frozen=True)
class Measurement:
    distance_m: float
    duration_s: float | None
    source: DistanceSource

    @classmethod
    def measured(cls, distance_m: float, duration_s: float | None) -> Measurement:
        return cls(distance_m=distance_m, duration_s=duration_s, source=DistanceSource.MEASURED)

    @classmethod
    def estimated(cls, distance_m: float) -> Measurement:
        return cls(distance_m=distance_m, duration_s=None, source=DistanceSource.ESTIMATED)

    @classmethod
    def coincident(cls) -> Measurement:
        return cls(distance_m=0.0, duration_s=0.0, source=DistanceSource.COINCIDENT)

    @property
    def is_estimated(self) -> bool:
        return self.source == DistanceSource.ESTIMATED


class RefinedCandidate(NamedTuple):
    stop: Stop
    local_distance_m: float
    refined: Measurement


@dataclass(frozen=True)
class JourneySegment:
    kind: TravelMode
    origin: tuple[float, float]
    destination: tuple[float, float]
    distance_m: float
    duration_minutes: float
    source: DistanceSource
    origin_name: str | None = None
    destination_name: str | None = None
    provider_duration_minutes: float | None = None
    fare_pkr: int = 0


class PlanStatus(str, Enum):
    BUS = "BUS"
    ALREADY_AT_STOP = "ALREADY_AT_STOP"
    WALK_IS_SHORTER = "WALK_IS_SHORTER"
    NO_TRANSIT_ROUTE = "NO_TRANSIT_ROUTE"
    NO_STOPS_IN_RANGE = "NO_STOPS_IN_RANGE"


@dataclass(frozen=True)
class Journey:
    boarding_stop: Stop | None
    destination_stop: Stop | None
    routes_used: tuple[str, ...]
    access: JourneySegment
    bus_leg: JourneySegment | None
    egress: JourneySegment | None
    total_distance_m: float
    total_duration_minutes: float
    estimated_fare_pkr: int
    instructions: str
    transfer_stop: Stop | None = None
    ride_stops: tuple[Stop, ...] = ()

    @property
    def segments(self) -> tuple[JourneySegment, ...]:
        return tuple(s for s in (self.access, self.bus_leg, self.egress) if s is not None)

    @property
    def requires_transfer(self) -> bool:
        return self.transfer_stop is not None

    @property
    def is_walk_only(self) -> bool:
        return self.bus_leg is None


@dataclass(frozen=True)
class PlanResult:
    journey: Journey
    status: PlanStatus

    @property
    def used_estimates(self) -> bool:
        """True when any segment fell back to a local estimate (provider unavailable)."""
        return any(s.source == DistanceSource.ESTIMATED for s in self.journey.segments)

"""Contract for the external directions provider."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class TravelProfile(str, Enum):
    WALKING = "walking"
    CYCLING = "cycling"
    DRIVING = "driving"


@dataclass(frozen=True)
class DirectionsResult:
    distance_m: float
    duration_s: float
    geometry: Any = None


class DirectionsPort(Protocol):
    """
    Road distance/duration between two (lat, lng) points.

    Raises InvalidCoordinates, RateLimited, ProviderUnavailable or
    MalformedResponse (see src.errors) so callers can tell them apart.
    """

    async def route(
        self,
        origin: tuple[float, float],
        destination: tuple[float, float],
        profile: TravelProfile,
    ) -> DirectionsResult: ...

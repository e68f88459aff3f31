"""
Per-request wrapper around the directions provider.

Every leg comes back as a Measurement tagged MEASURED, ESTIMATED or COINCIDENT; provider
errors never escape. Once the provider reports RateLimited, the remaining legs of
the same request skip it and use the local road-network estimate.
"""
from __future__ import annotations

import logging

from src.data.geo import ROAD_NETWORK_FACTOR, haversine_distance_m, road_network_estimate
from src.data.models import Measurement
from src.directions.models import DirectionsPort, TravelProfile
from src.errors import DirectionsError, RateLimited
from src.monitoring.metrics import record_provider_outcome

logger = logging.getLogger(__name__)

# Points closer than this are the same place; the distance is zero without asking anyone
COINCIDENT_POINTS_M = 1.0


class LegMeasurer:
    def __init__(self, directions: DirectionsPort | None, road_factor: float = ROAD_NETWORK_FACTOR):
        self._directions = directions
        self._road_factor = road_factor
        self._rate_limited = False
        self.provider_calls = 0

    @property
    def rate_limited(self) -> bool:
        return self._rate_limited

    def estimate(self, origin: tuple[float, float], destination: tuple[float, float]) -> Measurement:
        straight = haversine_distance_m(origin[0], origin[1], destination[0], destination[1])
        return Measurement.estimated(road_network_estimate(straight, self._road_factor))

    async def measure(
        self,
        origin: tuple[float, float],
        destination: tuple[float, float],
        profile: TravelProfile,
        *,
        label: str = "leg",
    ) -> Measurement:
        straight = haversine_distance_m(origin[0], origin[1], destination[0], destination[1])
        if straight < COINCIDENT_POINTS_M:
            return Measurement.coincident()

        if self._directions is None or self._rate_limited:
            record_provider_outcome("estimated")
            return self.estimate(origin, destination)

        self.provider_calls += 1
        try:
            result = await self._directions.route(origin, destination, profile)
        except RateLimited:
            self._rate_limited = True
            record_provider_outcome("rate_limited")
            logger.warning("telemetry directions_fallback leg=%s reason=RateLimited", label)
            return self.estimate(origin, destination)
        except DirectionsError as e:
            record_provider_outcome("estimated")
            logger.warning(
                "telemetry directions_fallback leg=%s reason=%s error=%s",
                label,
                type(e).__name__,
                str(e),
                extra={"leg": label, "reason": type(e).__name__},
            )
            return self.estimate(origin, destination)

        if result.distance_m <= 0:
            record_provider_outcome("estimated")
            logger.warning("telemetry directions_fallback leg=%s reason=non_positive_distance", label)
            return self.estimate(origin, destination)

        record_provider_outcome("measured")
        return Measurement.measured(result.distance_m, result.duration_s)

"""
Journey planning: user location + destination -> one Journey.

States: exact-stop check -> nearest-stop search -> boarding search ->
journey assembly, with a walking-only fallback whenever no bus leg is possible
or useful. Provider failures never abort a plan; every leg has a local estimate.
"""
from __future__ import annotations

import asyncio
import logging

from src.data.geo import (
    BRT_FLAT_FARE_PKR,
    BUS_BOARDING_WAIT_MINUTES,
    TravelMode,
    estimate_fare_pkr,
    estimated_travel_minutes,
    haversine_distance_m,
    is_valid_coordinate,
    road_network_estimate,
    suggest_access_mode,
)
from src.data.models import (
    DistanceSource,
    Journey,
    JourneySegment,
    Measurement,
    PlanResult,
    PlanStatus,
    Stop,
)
from src.data.transit_graph import TransitGraph
from src.directions.models import DirectionsPort, TravelProfile
from src.errors import InvalidInput, NoSequenceValidBoardingStop, NoStopsInRange
from src.planner.boarding import BoardingChoice, BoardingSelector
from src.planner.candidates import CandidateFilter
from src.planner.config import PlannerConfig
from src.planner.instructions import render_bus_journey, render_walk_only
from src.planner.measure import LegMeasurer

logger = logging.getLogger(__name__)

# Provider vs heuristic duration ratio beyond which we log a divergence
DURATION_DIVERGENCE_RATIO = 2.0


def _combine(first: Measurement, second: Measurement) -> Measurement:
    """Sum of two consecutive legs; ESTIMATED if either was."""
    if first.is_estimated or second.is_estimated:
        return Measurement.estimated(first.distance_m + second.distance_m)
    if first.source == second.source == DistanceSource.COINCIDENT:
        return Measurement.coincident()
    duration = None
    if first.duration_s is not None and second.duration_s is not None:
        duration = first.duration_s + second.duration_s
    return Measurement.measured(first.distance_m + second.distance_m, duration)


def _cross_check(label: str, measurement: Measurement, heuristic_minutes: float) -> float | None:
    """Provider duration in minutes, logging when it disagrees wildly with the speed heuristic."""
    if measurement.duration_s is None or measurement.source != DistanceSource.MEASURED:
        return None
    provider_minutes = measurement.duration_s / 60.0
    if heuristic_minutes > 0 and provider_minutes > 0:
        ratio = provider_minutes / heuristic_minutes
        if ratio > DURATION_DIVERGENCE_RATIO or ratio < 1 / DURATION_DIVERGENCE_RATIO:
            logger.warning(
                "telemetry duration_divergence leg=%s provider_min=%.1f heuristic_min=%.1f",
                label,
                provider_minutes,
                heuristic_minutes,
            )
    return round(provider_minutes, 1)


class JourneyPlanner:
    """Plans journeys over one TransitGraph. Safe to share between concurrent requests."""

    def __init__(
        self,
        graph: TransitGraph,
        directions: DirectionsPort | None,
        config: PlannerConfig | None = None,
    ):
        self.graph = graph
        self.config = config or PlannerConfig()
        self._directions = directions
        self._filter = CandidateFilter(graph, self.config)
        self._selector = BoardingSelector(graph, self.config)

    @property
    def candidate_filter(self) -> CandidateFilter:
        return self._filter

    @property
    def boarding_selector(self) -> BoardingSelector:
        return self._selector

    async def plan(
        self,
        user_lat: float,
        user_lng: float,
        dest_lat: float,
        dest_lng: float,
    ) -> PlanResult:
        if not is_valid_coordinate(user_lat, user_lng):
            raise InvalidInput(f"Invalid user coordinates ({user_lat}, {user_lng})")
        if not is_valid_coordinate(dest_lat, dest_lng):
            raise InvalidInput(f"Invalid destination coordinates ({dest_lat}, {dest_lng})")

        user = (user_lat, user_lng)
        dest = (dest_lat, dest_lng)
        measurer = LegMeasurer(self._directions, self.config.road_network_factor)

        # Exact-stop check, then nearest-stop search reusing its measurements
        exact, exact_refined = await self._filter.find_exact_stop(dest_lat, dest_lng, measurer)
        if exact is not None:
            destination_stop = exact.stop
        else:
            known = {r.stop.id: r.refined for r in exact_refined}
            try:
                nearest = await self._filter.find_nearest_stop(dest_lat, dest_lng, measurer, known=known)
            except NoStopsInRange:
                logger.info("telemetry plan_outcome status=%s", PlanStatus.NO_STOPS_IN_RANGE.value)
                return self._walk_only(user, dest, None, PlanStatus.NO_STOPS_IN_RANGE)
            destination_stop = nearest.stop

        user_stops = self._filter.prefilter(user_lat, user_lng, self.config.exact_stop_search_radius_m)
        if user_stops and user_stops[0].stop.id == destination_stop.id:
            logger.info("telemetry plan_outcome status=%s stop_id=%s", PlanStatus.ALREADY_AT_STOP.value, destination_stop.id)
            return self._walk_only(user, dest, destination_stop, PlanStatus.ALREADY_AT_STOP)

        try:
            choice = await self._selector.select(user, destination_stop, measurer)
        except NoSequenceValidBoardingStop:
            logger.info("telemetry plan_outcome status=%s stop_id=%s", PlanStatus.NO_TRANSIT_ROUTE.value, destination_stop.id)
            return self._walk_only(user, dest, destination_stop, PlanStatus.NO_TRANSIT_ROUTE)

        boarding = choice.option.stop
        to_boarding = haversine_distance_m(user_lat, user_lng, boarding.lat, boarding.lng)
        to_destination = haversine_distance_m(user_lat, user_lng, dest_lat, dest_lng)
        if to_boarding >= to_destination:
            logger.info("telemetry plan_outcome status=%s stop_id=%s", PlanStatus.WALK_IS_SHORTER.value, boarding.id)
            return self._walk_only(user, dest, destination_stop, PlanStatus.WALK_IS_SHORTER)

        journey = await self._assemble(user, dest, choice, destination_stop, measurer)
        result = PlanResult(journey=journey, status=PlanStatus.BUS)
        logger.info(
            "telemetry plan_outcome status=%s boarding=%s destination_stop=%s provider_calls=%s estimated=%s",
            PlanStatus.BUS.value,
            boarding.id,
            destination_stop.id,
            measurer.provider_calls,
            result.used_estimates,
        )
        return result

    def _access_segment(
        self,
        measurement: Measurement,
        origin: tuple[float, float],
        destination: tuple[float, float],
        origin_name: str | None,
        destination_name: str | None,
        label: str,
    ) -> JourneySegment:
        kind = suggest_access_mode(measurement.distance_m, self.config.walk_threshold_m, self.config.rickshaw_threshold_m)
        minutes = estimated_travel_minutes(measurement.distance_m, kind)
        provider_minutes = _cross_check(label, measurement, estimated_travel_minutes(measurement.distance_m, TravelMode.WALK))
        return JourneySegment(
            kind=kind,
            origin=origin,
            destination=destination,
            distance_m=round(measurement.distance_m, 1),
            duration_minutes=round(minutes, 1),
            source=measurement.source,
            origin_name=origin_name,
            destination_name=destination_name,
            provider_duration_minutes=provider_minutes,
            fare_pkr=estimate_fare_pkr(measurement.distance_m, kind),
        )

    def _ride_stops(self, choice: BoardingChoice, destination_stop: Stop) -> tuple[Stop, ...]:
        option = choice.option
        if option.transfer_stop is None:
            return self.graph.stops_between(option.routes[0], option.stop.id, destination_stop.id)
        first = self.graph.stops_between(option.routes[0], option.stop.id, option.transfer_stop.id)
        second = self.graph.stops_between(option.transfer_routes[0], option.transfer_stop.id, destination_stop.id)
        if not second:
            # Second bus reaches the destination only after its terminus
            second = (option.transfer_stop, destination_stop)
        return first + second[1:]

    async def _assemble(
        self,
        user: tuple[float, float],
        dest: tuple[float, float],
        choice: BoardingChoice,
        destination_stop: Stop,
        measurer: LegMeasurer,
    ) -> Journey:
        option = choice.option
        boarding = option.stop
        transfer = option.transfer_stop

        legs = [
            measurer.measure(user, boarding.coordinates, TravelProfile.WALKING, label="access"),
            measurer.measure(destination_stop.coordinates, dest, TravelProfile.WALKING, label="egress"),
        ]
        if transfer is not None:
            legs.append(measurer.measure(boarding.coordinates, transfer.coordinates, TravelProfile.DRIVING, label="bus_first"))
            legs.append(measurer.measure(transfer.coordinates, destination_stop.coordinates, TravelProfile.DRIVING, label="bus_second"))
        results = await asyncio.gather(*legs)
        access_m, egress_m = results[0], results[1]
        # Scoring already measured boarding -> destination stop on the driving profile
        ride_m = _combine(results[2], results[3]) if transfer is not None else choice.ride

        access = self._access_segment(access_m, user, boarding.coordinates, None, boarding.name, "access")
        egress = self._access_segment(egress_m, destination_stop.coordinates, dest, destination_stop.name, None, "egress")

        bus_minutes = estimated_travel_minutes(ride_m.distance_m, TravelMode.BUS)
        boardings = 1
        if transfer is not None:
            bus_minutes += BUS_BOARDING_WAIT_MINUTES
            boardings = 2
        provider_bus = _cross_check("bus", ride_m, bus_minutes - BUS_BOARDING_WAIT_MINUTES * boardings)
        bus_leg = JourneySegment(
            kind=TravelMode.BUS,
            origin=boarding.coordinates,
            destination=destination_stop.coordinates,
            distance_m=round(ride_m.distance_m, 1),
            duration_minutes=round(bus_minutes, 1),
            source=ride_m.source,
            origin_name=boarding.name,
            destination_name=destination_stop.name,
            provider_duration_minutes=provider_bus,
            fare_pkr=BRT_FLAT_FARE_PKR * boardings,
        )

        if transfer is not None:
            routes_used = (option.routes[0], option.transfer_routes[0])
        else:
            routes_used = option.routes
        ride_stops = self._ride_stops(choice, destination_stop)
        segments = (access, bus_leg, egress)
        total_distance = round(sum(s.distance_m for s in segments), 1)
        total_minutes = round(sum(s.duration_minutes for s in segments), 1)
        fare = sum(s.fare_pkr for s in segments)
        used_estimates = any(s.source == DistanceSource.ESTIMATED for s in segments)

        instructions = render_bus_journey(
            access=access,
            bus_leg=bus_leg,
            egress=egress,
            boarding_stop=boarding,
            destination_stop=destination_stop,
            routes_used=routes_used,
            transfer_stop=transfer,
            ride_stop_count=max(0, len(ride_stops) - 1),
            total_minutes=total_minutes,
            fare_pkr=fare,
            used_estimates=used_estimates,
        )
        return Journey(
            boarding_stop=boarding,
            destination_stop=destination_stop,
            routes_used=routes_used,
            access=access,
            bus_leg=bus_leg,
            egress=egress,
            total_distance_m=total_distance,
            total_duration_minutes=total_minutes,
            estimated_fare_pkr=fare,
            instructions=instructions,
            transfer_stop=transfer,
            ride_stops=ride_stops,
        )

    def _walk_only(
        self,
        user: tuple[float, float],
        dest: tuple[float, float],
        stop: Stop | None,
        status: PlanStatus,
    ) -> PlanResult:
        """Single straight-line-estimated leg to the destination; no provider call."""
        straight = haversine_distance_m(user[0], user[1], dest[0], dest[1])
        distance = road_network_estimate(straight, self.config.road_network_factor)
        kind = suggest_access_mode(distance, self.config.walk_threshold_m, self.config.rickshaw_threshold_m)
        segment = JourneySegment(
            kind=kind,
            origin=user,
            destination=dest,
            distance_m=round(distance, 1),
            duration_minutes=round(estimated_travel_minutes(distance, kind), 1),
            source=DistanceSource.ESTIMATED,
            destination_name=stop.name if stop else None,
            fare_pkr=estimate_fare_pkr(distance, kind),
        )
        journey = Journey(
            boarding_stop=stop,
            destination_stop=stop,
            routes_used=(),
            access=segment,
            bus_leg=None,
            egress=None,
            total_distance_m=segment.distance_m,
            total_duration_minutes=segment.duration_minutes,
            estimated_fare_pkr=segment.fare_pkr,
            instructions=render_walk_only(segment=segment, status=status),
        )
        return PlanResult(journey=journey, status=status)

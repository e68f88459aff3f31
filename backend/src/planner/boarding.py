"""
Boarding-stop selection for a given destination stop.

A stop is only offered as a boarding point on routes where it comes strictly
before the destination stop in travel order; boarding after the destination
would need the bus to reverse. Only when no stop at all qualifies (the
destination opens every route it is on) does a one-transfer search run: ride
in order to a stop T on another route, then change to a bus that serves the
destination.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from src.data.geo import haversine_distance_m
from src.data.models import Measurement, Stop
from src.data.transit_graph import TransitGraph
from src.directions.models import TravelProfile
from src.errors import NoSequenceValidBoardingStop
from src.planner.config import PlannerConfig
from src.planner.measure import LegMeasurer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoardingOption:
    stop: Stop
    routes: tuple[str, ...]  # routes that carry stop -> destination (or -> transfer_stop)
    local_distance_m: float  # straight line from the user
    transfer_stop: Stop | None = None
    transfer_routes: tuple[str, ...] = ()  # routes shared by transfer_stop and destination


@dataclass(frozen=True)
class BoardingChoice:
    option: BoardingOption
    access: Measurement  # user -> boarding stop
    ride: Measurement  # boarding stop -> destination stop

    @property
    def score(self) -> float:
        return self.access.distance_m + self.ride.distance_m


class BoardingSelector:
    def __init__(self, graph: TransitGraph, config: PlannerConfig):
        self._graph = graph
        self._config = config
        self._route_rank = {r.name: i for i, r in enumerate(graph.routes)}

    def _ordered(self, names) -> tuple[str, ...]:
        return tuple(sorted(names, key=lambda n: self._route_rank.get(n, len(self._route_rank))))

    def valid_boarding_routes(self, stop: Stop, destination: Stop) -> tuple[str, ...]:
        """Shared routes on which stop precedes destination."""
        shared = self._graph.routes_shared_between(stop, destination)
        return self._ordered(r for r in shared if self._graph.precedes(r, stop.id, destination.id))

    def direct_options(self, user: tuple[float, float], destination: Stop) -> list[BoardingOption]:
        options: list[BoardingOption] = []
        for stop in self._graph.planning_stops:
            if stop.id == destination.id:
                continue
            routes = self.valid_boarding_routes(stop, destination)
            if not routes:
                continue
            options.append(
                BoardingOption(
                    stop=stop,
                    routes=routes,
                    local_distance_m=haversine_distance_m(user[0], user[1], stop.lat, stop.lng),
                )
            )
        return options

    def transfer_options(self, user: tuple[float, float], destination: Stop) -> list[BoardingOption]:
        """One-transfer boarding points; for each boarding stop keep the transfer with the shortest local detour."""
        best: dict[str, tuple[float, str, BoardingOption]] = {}
        for route_in in self._ordered(destination.routes):
            for transfer in self._graph.stops_served_by(route_in):
                if transfer.id == destination.id:
                    continue
                to_dest = haversine_distance_m(transfer.lat, transfer.lng, destination.lat, destination.lng)
                shared = self._graph.routes_shared_between(transfer, destination)
                for route_out in self._ordered(transfer.routes):
                    if route_out == route_in:
                        continue
                    for stop in self._graph.stops_served_by(route_out):
                        if stop.id in (transfer.id, destination.id):
                            continue
                        if not self._graph.precedes(route_out, stop.id, transfer.id):
                            continue
                        detour = haversine_distance_m(stop.lat, stop.lng, transfer.lat, transfer.lng) + to_dest
                        current = best.get(stop.id)
                        if current is not None and (current[0], current[1]) <= (detour, transfer.id):
                            continue
                        option = BoardingOption(
                            stop=stop,
                            routes=self.valid_boarding_routes(stop, transfer),
                            local_distance_m=haversine_distance_m(user[0], user[1], stop.lat, stop.lng),
                            transfer_stop=transfer,
                            transfer_routes=self._ordered(r for r in shared if r != route_out),
                        )
                        best[stop.id] = (detour, transfer.id, option)
        return [option for _, _, option in best.values()]

    def candidate_options(self, user: tuple[float, float], destination: Stop) -> list[BoardingOption]:
        """
        Top K boarding options by straight-line distance from the user.
        Any sequence-valid direct stop, however far, rules out a transfer.
        """
        options = self.direct_options(user, destination)
        if not options:
            options = self.transfer_options(user, destination)
            logger.info(
                "telemetry no_direct_boarding destination_stop_id=%s transfer_options=%s",
                destination.id,
                len(options),
            )
        options.sort(key=lambda o: (o.local_distance_m, o.stop.id))
        return options[: self._config.top_k]

    async def _score(
        self,
        user: tuple[float, float],
        option: BoardingOption,
        destination: Stop,
        measurer: LegMeasurer,
    ) -> BoardingChoice:
        access, ride = await asyncio.gather(
            measurer.measure(user, option.stop.coordinates, TravelProfile.DRIVING, label="boarding_access"),
            measurer.measure(option.stop.coordinates, destination.coordinates, TravelProfile.DRIVING, label="boarding_ride"),
        )
        return BoardingChoice(option=option, access=access, ride=ride)

    async def select(
        self,
        user: tuple[float, float],
        destination: Stop,
        measurer: LegMeasurer,
    ) -> BoardingChoice:
        """
        Best boarding stop by total (access + ride) road distance.
        Raises NoSequenceValidBoardingStop when no bus, direct or with one transfer, can reach destination.
        """
        options = self.candidate_options(user, destination)
        if not options:
            raise NoSequenceValidBoardingStop(f"No stop can board towards {destination.id}")
        choices = await asyncio.gather(*(self._score(user, o, destination, measurer) for o in options))
        ranked = sorted(choices, key=lambda c: (c.score, c.access.distance_m, c.option.stop.id))
        best = ranked[0]
        logger.info(
            "telemetry boarding_selected stop_id=%s transfer=%s score_m=%.0f candidates=%s",
            best.option.stop.id,
            best.option.transfer_stop.id if best.option.transfer_stop else None,
            best.score,
            len(choices),
        )
        return best

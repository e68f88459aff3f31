"""
Two-stage stop narrowing.

Stage 1 scans every planning stop with Haversine (no I/O) and keeps those inside
a radius, nearest first. Stage 2 spends provider calls only on the top K of
Stage 1 and re-ranks them by road distance.
"""
from __future__ import annotations

import asyncio
import logging

from src.data.geo import haversine_distance_m
from src.data.models import Candidate, Measurement, RefinedCandidate
from src.data.transit_graph import TransitGraph
from src.directions.models import TravelProfile
from src.errors import NoStopsInRange
from src.planner.config import PlannerConfig
from src.planner.measure import LegMeasurer

logger = logging.getLogger(__name__)


class CandidateFilter:
    def __init__(self, graph: TransitGraph, config: PlannerConfig):
        self._graph = graph
        self._config = config

    def prefilter(self, lat: float, lng: float, radius_m: float) -> list[Candidate]:
        """Stage 1: stops within radius_m of (lat, lng), ascending by straight-line distance."""
        found: list[Candidate] = []
        for stop in self._graph.planning_stops:
            d = haversine_distance_m(lat, lng, stop.lat, stop.lng)
            if d <= radius_m:
                found.append(Candidate(stop=stop, local_distance_m=d))
        found.sort(key=lambda c: (c.local_distance_m, c.stop.id))
        return found

    async def refine(
        self,
        lat: float,
        lng: float,
        candidates: list[Candidate],
        measurer: LegMeasurer,
        known: dict[str, Measurement] | None = None,
    ) -> list[RefinedCandidate]:
        """
        Stage 2: road distance from (lat, lng) to each of the top K candidates, re-ranked.
        Measurements already in `known` (keyed by stop id) are reused without a call.
        """
        top = candidates[: self._config.top_k]
        known = known or {}
        point = (lat, lng)

        async def _one(c: Candidate) -> Measurement:
            if c.stop.id in known:
                return known[c.stop.id]
            return await measurer.measure(point, c.stop.coordinates, TravelProfile.DRIVING, label="candidate")

        measurements = await asyncio.gather(*(_one(c) for c in top))
        refined = [
            RefinedCandidate(stop=c.stop, local_distance_m=c.local_distance_m, refined=m)
            for c, m in zip(top, measurements)
        ]
        refined.sort(key=lambda r: (r.refined.distance_m, r.local_distance_m, r.stop.id))
        return refined

    async def find_exact_stop(
        self,
        lat: float,
        lng: float,
        measurer: LegMeasurer,
    ) -> tuple[RefinedCandidate | None, list[RefinedCandidate]]:
        """
        Stop the point is "at": best refined candidate within exact_stop_threshold_m.
        Also returns the refined list so a following nearest-stop search can reuse it.
        """
        candidates = self.prefilter(lat, lng, self._config.exact_stop_search_radius_m)
        if not candidates:
            return None, []
        refined = await self.refine(lat, lng, candidates, measurer)
        best = refined[0]
        if best.refined.distance_m <= self._config.exact_stop_threshold_m:
            logger.info("telemetry exact_stop_found stop_id=%s distance_m=%.0f", best.stop.id, best.refined.distance_m)
            return best, refined
        return None, refined

    async def find_nearest_stop(
        self,
        lat: float,
        lng: float,
        measurer: LegMeasurer,
        known: dict[str, Measurement] | None = None,
    ) -> RefinedCandidate:
        """Nearest stop by road distance. Raises NoStopsInRange when nothing is within the search radius."""
        radius = self._config.nearest_stop_search_radius_m
        candidates = self.prefilter(lat, lng, radius)
        if not candidates:
            raise NoStopsInRange(f"No stop within {radius:.0f} m of ({lat}, {lng})")
        refined = await self.refine(lat, lng, candidates, measurer, known=known)
        return refined[0]

"""Tunable planner knobs. Built from Settings in the app; tests construct it directly."""
from dataclasses import dataclass

from src.data.geo import RICKSHAW_THRESHOLD_M, ROAD_NETWORK_FACTOR, WALK_THRESHOLD_M

DEFAULT_TOP_K = 3
EXACT_STOP_SEARCH_RADIUS_M = 1000.0
NEAREST_STOP_SEARCH_RADIUS_M = 10_000.0
# Wide enough for GPS error, tight enough to avoid calling a nearby street "at the stop"
EXACT_STOP_THRESHOLD_M = 200.0


@dataclass(frozen=True)
class PlannerConfig:
    top_k: int = DEFAULT_TOP_K
    exact_stop_search_radius_m: float = EXACT_STOP_SEARCH_RADIUS_M
    nearest_stop_search_radius_m: float = NEAREST_STOP_SEARCH_RADIUS_M
    exact_stop_threshold_m: float = EXACT_STOP_THRESHOLD_M
    road_network_factor: float = ROAD_NETWORK_FACTOR
    walk_threshold_m: float = WALK_THRESHOLD_M
    rickshaw_threshold_m: float = RICKSHAW_THRESHOLD_M

    def __post_init__(self):
        if self.top_k < 1:
            raise ValueError("top_k must be >= 1")
        if self.road_network_factor < 1.0:
            raise ValueError("road_network_factor must be >= 1.0")

    @classmethod
    def from_settings(cls, settings) -> "PlannerConfig":
        return cls(
            top_k=settings.candidate_top_k,
            exact_stop_search_radius_m=settings.exact_stop_search_radius_m,
            nearest_stop_search_radius_m=settings.nearest_stop_search_radius_m,
            exact_stop_threshold_m=settings.exact_stop_threshold_m,
            road_network_factor=settings.road_network_factor,
            walk_threshold_m=settings.walk_threshold_m,
            rickshaw_threshold_m=settings.rickshaw_threshold_m,
        )

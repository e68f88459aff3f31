"""
Haversine distance, mode-speed time estimates and fare heuristics.
All functions are pure; nothing here touches the network.
"""
import math
from enum import Enum

# Earth radius in km (WGS84 approximate)
EARTH_RADIUS_KM = 6371.0

# Straight-line -> road distance correction when no provider answer is available
ROAD_NETWORK_FACTOR = 1.2

# Fixed boarding/waiting allowance added to every bus leg
BUS_BOARDING_WAIT_MINUTES = 5.0

# Access/egress mode thresholds (meters)
WALK_THRESHOLD_M = 500.0
RICKSHAW_THRESHOLD_M = 2000.0

# Fares in PKR
BRT_FLAT_FARE_PKR = 50
RICKSHAW_BASE_FARE_PKR = 80
RICKSHAW_PER_KM_PKR = 35
RIDE_HAIL_BASE_FARE_PKR = 60
RIDE_HAIL_PER_KM_PKR = 25


class TravelMode(str, Enum):
    WALK = "WALK"
    RICKSHAW = "RICKSHAW"
    RIDE_HAIL = "RIDE_HAIL"
    BUS = "BUS"


# Average speeds in km/h
MODE_SPEED_KMH: dict[TravelMode, float] = {
    TravelMode.WALK: 5.0,
    TravelMode.RICKSHAW: 20.0,
    TravelMode.RIDE_HAIL: 25.0,
    TravelMode.BUS: 25.0,
}


def haversine_distance_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Return great-circle distance between two points in kilometers.
    Arguments in degrees.
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_distance_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Return great-circle distance in meters. Arguments in degrees."""
    return haversine_distance_km(lat1, lng1, lat2, lng2) * 1000.0


def is_valid_coordinate(lat: float, lng: float) -> bool:
    if lat is None or lng is None:
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def estimated_travel_minutes(distance_m: float, mode: TravelMode) -> float:
    """
    Minutes to cover distance_m at the fixed average speed for mode.
    Bus legs include BUS_BOARDING_WAIT_MINUTES.
    """
    distance_m = max(0.0, distance_m)
    speed_mpm = MODE_SPEED_KMH[mode] * 1000.0 / 60.0
    minutes = distance_m / speed_mpm
    if mode == TravelMode.BUS:
        minutes += BUS_BOARDING_WAIT_MINUTES
    return minutes


def road_network_estimate(straight_line_m: float, factor: float = ROAD_NETWORK_FACTOR) -> float:
    """Approximate road distance from a straight-line distance."""
    return max(0.0, straight_line_m) * factor


def suggest_access_mode(
    distance_m: float,
    walk_threshold_m: float = WALK_THRESHOLD_M,
    rickshaw_threshold_m: float = RICKSHAW_THRESHOLD_M,
) -> TravelMode:
    """Walk below walk_threshold_m, rickshaw below rickshaw_threshold_m, ride-hail beyond."""
    if distance_m < walk_threshold_m:
        return TravelMode.WALK
    if distance_m < rickshaw_threshold_m:
        return TravelMode.RICKSHAW
    return TravelMode.RIDE_HAIL


def estimate_fare_pkr(distance_m: float, mode: TravelMode) -> int:
    km = max(0.0, distance_m) / 1000.0
    if mode == TravelMode.WALK:
        return 0
    if mode == TravelMode.BUS:
        return BRT_FLAT_FARE_PKR
    if mode == TravelMode.RICKSHAW:
        return int(round(RICKSHAW_BASE_FARE_PKR + RICKSHAW_PER_KM_PKR * km))
    return int(round(RIDE_HAIL_BASE_FARE_PKR + RIDE_HAIL_PER_KM_PKR * km))


def format_distance(distance_m: float) -> str:
    if distance_m < 1000:
        return f"{round(distance_m)}m"
    return f"{distance_m / 1000:.1f}km"

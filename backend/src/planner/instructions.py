"""Human-readable step text for a planned journey."""
from __future__ import annotations

from src.data.geo import TravelMode, format_distance
from src.data.models import JourneySegment, PlanStatus, Stop

ESTIMATE_NOTE = "Note: live directions were unavailable; distances are estimated."
WALK_ESTIMATE_NOTE = "Distance is estimated from the straight-line distance."

_WALK_ONLY_REASONS = {
    PlanStatus.ALREADY_AT_STOP: "You are already at the nearest stop to your destination; no bus needed.",
    PlanStatus.WALK_IS_SHORTER: "Your destination is closer than any useful bus stop; no bus needed.",
    PlanStatus.NO_TRANSIT_ROUTE: "No bus route reaches your destination from here.",
    PlanStatus.NO_STOPS_IN_RANGE: "No transit route found: there is no bus stop near your destination.",
}


def _minutes(value: float) -> int:
    return max(1, round(value)) if value > 0 else 0


def _leg_text(segment: JourneySegment, target: str) -> str:
    dist = format_distance(segment.distance_m)
    mins = _minutes(segment.duration_minutes)
    if segment.kind == TravelMode.WALK:
        return f"Walk {dist} to {target} ({mins} min)"
    if segment.kind == TravelMode.RICKSHAW:
        return f"Take a rickshaw ({dist}) to {target} ({mins} min, ~Rs. {segment.fare_pkr})"
    return f"Take Bykea/Careem ({dist}) to {target} ({mins} min, ~Rs. {segment.fare_pkr})"


def _footer(total_minutes: float, fare_pkr: int, used_estimates: bool) -> list[str]:
    lines = ["", f"Total estimated time: {_minutes(total_minutes)} min", f"Estimated fare: Rs. {fare_pkr}"]
    if used_estimates:
        lines.append(ESTIMATE_NOTE)
    return lines


def render_bus_journey(
    *,
    access: JourneySegment,
    bus_leg: JourneySegment,
    egress: JourneySegment,
    boarding_stop: Stop,
    destination_stop: Stop,
    routes_used: tuple[str, ...],
    transfer_stop: Stop | None,
    ride_stop_count: int,
    total_minutes: float,
    fare_pkr: int,
    used_estimates: bool,
) -> str:
    lines = [f"1. {_leg_text(access, f'{boarding_stop.name} stop')}"]
    if transfer_stop is not None:
        first = routes_used[0] if routes_used else "available route"
        second = routes_used[1] if len(routes_used) > 1 else "another"
        lines.append(f"2. Take {first} bus to {transfer_stop.name}")
        lines.append(f"3. Transfer to {second} bus heading to {destination_stop.name}")
    else:
        route_text = " or ".join(routes_used) if routes_used else "available route"
        stops_text = f"{ride_stop_count} stops, " if ride_stop_count > 0 else ""
        lines.append(
            f"2. Take {route_text} bus from {boarding_stop.name} to {destination_stop.name} "
            f"({stops_text}{_minutes(bus_leg.duration_minutes)} min)"
        )
    step = 4 if transfer_stop is not None else 3
    if egress.distance_m < 1.0:
        lines.append(f"{step}. Your destination is at {destination_stop.name} stop")
    else:
        lines.append(f"{step}. {_leg_text(egress, 'your destination')}")
    lines.extend(_footer(total_minutes, fare_pkr, used_estimates))
    return "\n".join(lines)


def render_walk_only(*, segment: JourneySegment, status: PlanStatus) -> str:
    lines = [_WALK_ONLY_REASONS[status], f"1. {_leg_text(segment, 'your destination')}"]
    lines.extend(_footer(segment.duration_minutes, segment.fare_pkr, used_estimates=False))
    lines.append(WALK_ESTIMATE_NOTE)
    return "\n".join(lines)

"""Tests for the human-readable journey text."""
from src.data.geo import TravelMode
from src.data.models import DistanceSource, JourneySegment, PlanStatus, Stop
from src.planner.instructions import ESTIMATE_NOTE, render_bus_journey, render_walk_only

TOWER = Stop(id="tower", name="Tower", lat=24.8490, lng=66.9960, routes=frozenset({"2"}))
REGAL = Stop(id="regal_chowk", name="Regal Chowk", lat=24.8575, lng=67.0235, routes=frozenset({"2", "3"}))
FRERE = Stop(id="frere_hall", name="Frere Hall", lat=24.8482, lng=67.0305, routes=frozenset({"2", "3"}))


def _segment(kind, distance_m, minutes, fare=0, source=DistanceSource.MEASURED):
    return JourneySegment(
        kind=kind,
        origin=(0.0, 0.0),
        destination=(0.0, 0.0),
        distance_m=distance_m,
        duration_minutes=minutes,
        source=source,
        fare_pkr=fare,
    )


def test_direct_journey_text():
    text = render_bus_journey(
        access=_segment(TravelMode.WALK, 420, 5.0),
        bus_leg=_segment(TravelMode.BUS, 3500, 13.4, fare=50),
        egress=_segment(TravelMode.WALK, 150, 1.8),
        boarding_stop=TOWER,
        destination_stop=FRERE,
        routes_used=("2", "3"),
        transfer_stop=None,
        ride_stop_count=3,
        total_minutes=20.2,
        fare_pkr=50,
        used_estimates=False,
    )
    assert text.splitlines() == [
        "1. Walk 420m to Tower stop (5 min)",
        "2. Take 2 or 3 bus from Tower to Frere Hall (3 stops, 13 min)",
        "3. Walk 150m to your destination (2 min)",
        "",
        "Total estimated time: 20 min",
        "Estimated fare: Rs. 50",
    ]


def test_rickshaw_and_ride_hail_legs():
    text = render_bus_journey(
        access=_segment(TravelMode.RICKSHAW, 1200, 3.6, fare=122),
        bus_leg=_segment(TravelMode.BUS, 3500, 13.4, fare=50),
        egress=_segment(TravelMode.RIDE_HAIL, 2500, 6.0, fare=123),
        boarding_stop=TOWER,
        destination_stop=FRERE,
        routes_used=("2",),
        transfer_stop=None,
        ride_stop_count=3,
        total_minutes=23.0,
        fare_pkr=295,
        used_estimates=True,
    )
    lines = text.splitlines()
    assert lines[0] == "1. Take a rickshaw (1.2km) to Tower stop (4 min, ~Rs. 122)"
    assert lines[2] == "3. Take Bykea/Careem (2.5km) to your destination (6 min, ~Rs. 123)"
    assert lines[-1] == ESTIMATE_NOTE


def test_transfer_journey_text():
    text = render_bus_journey(
        access=_segment(TravelMode.WALK, 100, 1.2),
        bus_leg=_segment(TravelMode.BUS, 5000, 22.0, fare=100),
        egress=_segment(TravelMode.WALK, 0, 0),
        boarding_stop=TOWER,
        destination_stop=FRERE,
        routes_used=("2", "3"),
        transfer_stop=REGAL,
        ride_stop_count=4,
        total_minutes=23.2,
        fare_pkr=100,
        used_estimates=False,
    )
    lines = text.splitlines()
    assert lines[1] == "2. Take 2 bus to Regal Chowk"
    assert lines[2] == "3. Transfer to 3 bus heading to Frere Hall"
    assert lines[3] == "4. Your destination is at Frere Hall stop"


def test_walk_only_text_states_reason():
    text = render_walk_only(segment=_segment(TravelMode.WALK, 360, 4.3, source=DistanceSource.ESTIMATED), status=PlanStatus.ALREADY_AT_STOP)
    lines = text.splitlines()
    assert lines[0].startswith("You are already at the nearest stop")
    assert lines[1] == "1. Walk 360m to your destination (4 min)"
    assert "Estimated fare: Rs. 0" in lines
    assert ESTIMATE_NOTE not in text

"""Pydantic models for the HTTP API (POST /journey, stops and routes)."""
from pydantic import BaseModel, Field, model_validator

from src.data.models import BusRoute, Journey, JourneySegment, PlanResult, Stop


class JourneyRequest(BaseModel):
    lat: float
    lng: float
    destination_lat: float
    destination_lng: float
    destination_name: str | None = None

    @model_validator(mode="after")
    def check_coordinates(self):
        if not (-90 <= self.lat <= 90):
            raise ValueError("lat must be between -90 and 90")
        if not (-180 <= self.lng <= 180):
            raise ValueError("lng must be between -180 and 180")
        if not (-90 <= self.destination_lat <= 90):
            raise ValueError("destination_lat must be between -90 and 90")
        if not (-180 <= self.destination_lng <= 180):
            raise ValueError("destination_lng must be between -180 and 180")
        return self


class StopInfo(BaseModel):
    stop_id: str
    stop_name: str
    lat: float
    lng: float
    routes: list[str] = Field(default_factory=list)

    @classmethod
    def from_stop(cls, stop: Stop) -> "StopInfo":
        return cls(stop_id=stop.id, stop_name=stop.name, lat=stop.lat, lng=stop.lng, routes=sorted(stop.routes))


class NearbyStop(StopInfo):
    distance_m: float


class StopsResponse(BaseModel):
    stops: list[StopInfo]


class NearbyStopsResponse(BaseModel):
    stops: list[NearbyStop]


class RouteSummary(BaseModel):
    name: str
    color: str
    stop_count: int


class RoutesResponse(BaseModel):
    routes: list[RouteSummary]


class RouteDetail(BaseModel):
    name: str
    color: str
    stops: list[StopInfo]

    @classmethod
    def from_route(cls, route: BusRoute) -> "RouteDetail":
        return cls(name=route.name, color=route.color, stops=[StopInfo.from_stop(s) for s in route.stops])


class SegmentInfo(BaseModel):
    type: str  # "WALK" | "RICKSHAW" | "RIDE_HAIL" | "BUS"
    distance_m: float
    duration_minutes: float
    distance_source: str  # "MEASURED" | "ESTIMATED" | "COINCIDENT"
    fare_pkr: int
    origin: list[float]
    destination: list[float]
    origin_name: str | None = None
    destination_name: str | None = None
    provider_duration_minutes: float | None = None

    @classmethod
    def from_segment(cls, segment: JourneySegment) -> "SegmentInfo":
        return cls(
            type=segment.kind.value,
            distance_m=segment.distance_m,
            duration_minutes=segment.duration_minutes,
            distance_source=segment.source.value,
            fare_pkr=segment.fare_pkr,
            origin=list(segment.origin),
            destination=list(segment.destination),
            origin_name=segment.origin_name,
            destination_name=segment.destination_name,
            provider_duration_minutes=segment.provider_duration_minutes,
        )


class JourneyInfo(BaseModel):
    boarding_stop: StopInfo | None
    destination_stop: StopInfo | None
    transfer_stop: StopInfo | None = None
    routes_used: list[str]
    segments: list[SegmentInfo]
    ride_stops: list[StopInfo]
    total_distance_m: float
    total_duration_minutes: float
    estimated_fare_pkr: int
    instructions: str

    @classmethod
    def from_journey(cls, journey: Journey) -> "JourneyInfo":
        def _stop(s: Stop | None) -> StopInfo | None:
            return StopInfo.from_stop(s) if s is not None else None

        return cls(
            boarding_stop=_stop(journey.boarding_stop),
            destination_stop=_stop(journey.destination_stop),
            transfer_stop=_stop(journey.transfer_stop),
            routes_used=list(journey.routes_used),
            segments=[SegmentInfo.from_segment(s) for s in journey.segments],
            ride_stops=[StopInfo.from_stop(s) for s in journey.ride_stops],
            total_distance_m=journey.total_distance_m,
            total_duration_minutes=journey.total_duration_minutes,
            estimated_fare_pkr=journey.estimated_fare_pkr,
            instructions=journey.instructions,
        )


class JourneyResponse(BaseModel):
    status: str  # PlanStatus value
    used_estimates: bool
    destination_name: str | None = None
    journey: JourneyInfo

    @classmethod
    def from_result(cls, result: PlanResult, destination_name: str | None = None) -> "JourneyResponse":
        return cls(
            status=result.status.value,
            used_estimates=result.used_estimates,
            destination_name=destination_name,
            journey=JourneyInfo.from_journey(result.journey),
        )


class ReloadResponse(BaseModel):
    stops: int
    routes: int

import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from settings import get_settings
from src.data.transit_graph import load_graph_file
from src.directions import MapboxDirectionsClient, RequestBudget
from src.errors import DataIntegrityError, InvalidInput
from src.middleware import OptionalAPIKeyMiddleware, RequestLoggingMiddleware, get_valid_api_keys
from src.monitoring import get_metrics
from src.planner import JourneyPlanner, PlannerConfig
from src.planner.schemas import (
    JourneyRequest,
    JourneyResponse,
    NearbyStop,
    NearbyStopsResponse,
    ReloadResponse,
    RouteDetail,
    RoutesResponse,
    RouteSummary,
    StopInfo,
    StopsResponse,
)

settings = get_settings()
BACKEND_ROOT = Path(__file__).resolve().parent
NETWORK_DATA = BACKEND_ROOT / settings.network_data_path

# Structured logging: include module and level; handlers can add JSON later
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

# Input validation bounds (public robustness)
LAT_MIN, LAT_MAX = -90.0, 90.0
LNG_MIN, LNG_MAX = -180.0, 180.0
RADIUS_M_MIN, RADIUS_M_MAX = 100, 10_000
STOPS_LIMIT_MAX = 100
STOP_ID_MAX_LEN = 64
STOP_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+$")


def _validate_lat_lng(lat: float, lng: float) -> None:
    if not (LAT_MIN <= lat <= LAT_MAX):
        raise HTTPException(status_code=400, detail=f"lat must be between {LAT_MIN} and {LAT_MAX}")
    if not (LNG_MIN <= lng <= LNG_MAX):
        raise HTTPException(status_code=400, detail=f"lng must be between {LNG_MIN} and {LNG_MAX}")


def _build_planner(directions: MapboxDirectionsClient) -> JourneyPlanner:
    graph = load_graph_file(NETWORK_DATA)
    return JourneyPlanner(graph, directions, PlannerConfig.from_settings(settings))


@asynccontextmanager
async def lifespan(app: FastAPI):
    budget = RequestBudget(max_calls=settings.directions_budget_per_minute)
    directions = MapboxDirectionsClient(
        settings.mapbox_access_token,
        budget,
        base_url=settings.mapbox_base_url,
        timeout_seconds=settings.directions_timeout_seconds,
        max_retries=settings.directions_max_retries,
        retry_backoff_seconds=settings.directions_retry_backoff_seconds,
        cache_ttl_seconds=settings.directions_cache_ttl_seconds,
    )
    if not settings.mapbox_access_token:
        logger.warning("telemetry mapbox_token_missing fallback=estimates")
    # DataIntegrityError here aborts startup: a broken network must not serve plans
    app.state.planner = _build_planner(directions)
    app.state.budget = budget
    app.state.directions = directions
    yield
    await directions.aclose()
    app.state.planner = None


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(InvalidInput)
def invalid_input_handler(request: Request, exc: InvalidInput):
    logger.info("telemetry invalid_input path=%s error=%s", request.url.path, str(exc))
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):
    """Return consistent JSON error for unhandled exceptions (500). Skip validation/HTTP errors."""
    from fastapi.exceptions import RequestValidationError
    if isinstance(exc, (HTTPException, RequestValidationError)):
        raise exc
    logger.exception("telemetry unhandled_exception path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )


# Order: last added = innermost. So RequestLogging runs first (outermost), then Auth, then CORS.
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    OptionalAPIKeyMiddleware,
    api_key_required=settings.api_key_required,
    api_keys=get_valid_api_keys(settings.api_keys),
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _planner() -> JourneyPlanner:
    planner: JourneyPlanner | None = getattr(app.state, "planner", None)
    if planner is None:
        raise HTTPException(status_code=503, detail="Transit network not loaded.")
    return planner


@app.get("/favicon.ico", include_in_schema=False)
@limiter.exempt
def favicon(request: Request):
    """Return 204 so browser favicon requests don't log 404."""
    return Response(status_code=204)


@app.get("/health")
@limiter.exempt
def health(request: Request):
    logger.info("telemetry route=health")
    return {"status": "ok"}


@app.get("/metrics")
@limiter.exempt
def metrics(request: Request):
    """Request counts, directions outcomes and the live directions budget."""
    data = get_metrics()
    budget: RequestBudget | None = getattr(app.state, "budget", None)
    if budget is not None:
        data.update(budget.snapshot())
    return data


# --- Stops ---


@app.get("/stops", response_model=StopsResponse)
def list_stops(request: Request, q: str = "", limit: int = 20):
    """Search stops by name (exact, then prefix, then contains). Empty q lists stops in id order."""
    if not (1 <= limit <= STOPS_LIMIT_MAX):
        raise HTTPException(status_code=400, detail=f"limit must be between 1 and {STOPS_LIMIT_MAX}")
    graph = _planner().graph
    query = (q or "").strip()
    if query:
        stops = graph.search_stops(query, limit=limit)
    else:
        stops = sorted(graph.stops, key=lambda s: s.id)[:limit]
    return StopsResponse(stops=[StopInfo.from_stop(s) for s in stops])


@app.get("/stops/nearby", response_model=NearbyStopsResponse)
def stops_nearby(request: Request, lat: float = 0.0, lng: float = 0.0, radius_m: int = 1000):
    _validate_lat_lng(lat, lng)
    if not (RADIUS_M_MIN <= radius_m <= RADIUS_M_MAX):
        raise HTTPException(
            status_code=400,
            detail=f"radius_m must be between {RADIUS_M_MIN} and {RADIUS_M_MAX}",
        )
    logger.info("telemetry route=stops_nearby radius_m=%s", radius_m)
    candidates = _planner().candidate_filter.prefilter(lat, lng, radius_m)[:10]
    return NearbyStopsResponse(
        stops=[
            NearbyStop(**StopInfo.from_stop(c.stop).model_dump(), distance_m=round(c.local_distance_m, 1))
            for c in candidates
        ]
    )


@app.get("/stops/{stop_id}", response_model=StopInfo)
def get_stop(request: Request, stop_id: str):
    if not stop_id or len(stop_id) > STOP_ID_MAX_LEN or not STOP_ID_PATTERN.match(stop_id):
        raise HTTPException(
            status_code=400,
            detail="Invalid stop_id (alphanumeric, underscore, hyphen only; max 64 chars).",
        )
    stop = _planner().graph.get_stop(stop_id)
    if stop is None:
        raise HTTPException(status_code=404, detail=f"Stop not found: {stop_id}.")
    return StopInfo.from_stop(stop)


# --- Routes ---


@app.get("/routes", response_model=RoutesResponse)
def list_routes(request: Request):
    """Numbered routes first, then EV routes."""
    graph = _planner().graph
    summaries = []
    for name in graph.sorted_route_names():
        route = graph.route(name)
        summaries.append(RouteSummary(name=route.name, color=route.color, stop_count=len(route.stops)))
    return RoutesResponse(routes=summaries)


@app.get("/routes/{route_name}", response_model=RouteDetail)
def get_route(request: Request, route_name: str):
    route = _planner().graph.route(route_name)
    if route is None:
        raise HTTPException(status_code=404, detail=f"Route not found: {route_name}.")
    return RouteDetail.from_route(route)


@app.get("/routes/{route_name}/between", response_model=StopsResponse)
def get_route_between(request: Request, route_name: str, from_stop_id: str = "", to_stop_id: str = ""):
    """Stops travelled on route_name from from_stop_id to to_stop_id (inclusive). Empty if not in travel order."""
    graph = _planner().graph
    if graph.route(route_name) is None:
        raise HTTPException(status_code=404, detail=f"Route not found: {route_name}.")
    if not from_stop_id or not to_stop_id:
        raise HTTPException(status_code=400, detail="Provide from_stop_id and to_stop_id.")
    stops = graph.stops_between(route_name, from_stop_id, to_stop_id)
    return StopsResponse(stops=[StopInfo.from_stop(s) for s in stops])


# --- Journey planning ---


@app.post("/journey", response_model=JourneyResponse)
@limiter.limit(settings.journey_rate_limit)
async def post_journey(request: Request, body: JourneyRequest):
    """Plan a door-to-door journey: access leg, one BRT leg (or one transfer), egress leg; walking-only when no bus fits."""
    logger.info(
        "telemetry route=journey dest_lat=%s dest_lng=%s",
        body.destination_lat,
        body.destination_lng,
    )
    result = await _planner().plan(body.lat, body.lng, body.destination_lat, body.destination_lng)
    return JourneyResponse.from_result(result, destination_name=body.destination_name)


# --- Network data ---


@app.post("/network/reload", response_model=ReloadResponse)
def reload_network(request: Request):
    """Reload the network dataset from disk. The new graph replaces the old one whole; on error the old one stays."""
    directions = getattr(app.state, "directions", None)
    if directions is None:
        raise HTTPException(status_code=503, detail="Service not started.")
    try:
        planner = _build_planner(directions)
    except DataIntegrityError as e:
        logger.warning("telemetry network_reload_failed error=%s", str(e))
        raise HTTPException(status_code=409, detail=str(e)) from e
    app.state.planner = planner
    logger.info("telemetry network_reloaded stops=%s routes=%s", len(planner.graph.stops), len(planner.graph.routes))
    return ReloadResponse(stops=len(planner.graph.stops), routes=len(planner.graph.routes))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)

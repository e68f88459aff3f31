"""
Mapbox Directions API client with in-memory TTL cache, per-call budget check,
timeouts, and retry with exponential backoff on server-side failures only.
"""
import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from src.data.geo import haversine_distance_m, is_valid_coordinate
from src.directions.budget import RequestBudget
from src.directions.models import DirectionsResult, TravelProfile
from src.errors import InvalidCoordinates, MalformedResponse, ProviderUnavailable, RateLimited
from src.monitoring.metrics import record_provider_outcome

logger = logging.getLogger(__name__)

MAPBOX_BASE = "https://api.mapbox.com"
DIRECTIONS_CACHE_TTL_SECONDS = 300
DIRECTIONS_CACHE_MAX_ENTRIES = 2048
DIRECTIONS_REQUEST_TIMEOUT_SECONDS = 20.0
DIRECTIONS_MAX_RETRIES = 2
DIRECTIONS_RETRY_BASE_DELAY_SECONDS = 0.5
DIRECTIONS_RETRY_MAX_DELAY_SECONDS = 4.0

# Road/straight-line ratio outside these bounds means the provider answer is wrong
MIN_PLAUSIBLE_RATIO = 0.1
MAX_PLAUSIBLE_RATIO = 10.0
# Below this straight-line distance the ratio is too noisy to judge
RATIO_CHECK_MIN_STRAIGHT_M = 50.0


class _TTLCache:
    """
    Simple in-memory TTL cache. One TTL per key (from first set).
    Expired entries are swept on write at most once per TTL, and the oldest
    entries go first once max_entries is reached.
    """

    def __init__(
        self,
        ttl_seconds: float = DIRECTIONS_CACHE_TTL_SECONDS,
        max_entries: int = DIRECTIONS_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = ttl_seconds
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._store: dict[str, tuple[Any, float]] = {}
        self._next_sweep = clock() + ttl_seconds

    def __len__(self) -> int:
        return len(self._store)

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return value

    def _sweep(self, now: float) -> None:
        self._store = {k: entry for k, entry in self._store.items() if entry[1] > now}
        self._next_sweep = now + self._ttl

    def set(self, key: str, value: Any) -> None:
        if self._ttl <= 0:
            return
        now = self._clock()
        if now >= self._next_sweep or len(self._store) >= self._max_entries:
            self._sweep(now)
        self._store.pop(key, None)
        # Insertion order is expiry order, so the first key is the oldest
        while len(self._store) >= self._max_entries:
            del self._store[next(iter(self._store))]
        self._store[key] = (value, now + self._ttl)


def _coords_string(origin: tuple[float, float], destination: tuple[float, float]) -> str:
    """Mapbox wants lng,lat pairs separated by semicolons."""
    return f"{origin[1]},{origin[0]};{destination[1]},{destination[0]}"


def _parse_directions_response(
    data: Any,
    origin: tuple[float, float],
    destination: tuple[float, float],
) -> DirectionsResult:
    """Validate a Directions API payload and return the first route. Raises MalformedResponse."""
    if not isinstance(data, dict):
        raise MalformedResponse("Directions response is not a JSON object")
    code = data.get("code")
    if code is not None and code != "Ok":
        raise MalformedResponse(f"Directions response code={code}")
    routes = data.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        raise MalformedResponse("Directions response has no routes")
    first = routes[0]
    distance = first.get("distance")
    duration = first.get("duration")
    if not isinstance(distance, (int, float)) or not isinstance(duration, (int, float)):
        raise MalformedResponse("Directions route lacks numeric distance/duration")
    if distance < 0 or duration < 0:
        raise MalformedResponse("Directions route has negative distance/duration")

    straight = haversine_distance_m(origin[0], origin[1], destination[0], destination[1])
    if straight >= RATIO_CHECK_MIN_STRAIGHT_M:
        ratio = distance / straight
        if ratio < MIN_PLAUSIBLE_RATIO or ratio > MAX_PLAUSIBLE_RATIO:
            raise MalformedResponse(f"Implausible road/straight-line ratio {ratio:.2f}")
    return DirectionsResult(distance_m=float(distance), duration_s=float(duration), geometry=first.get("geometry"))


class MapboxDirectionsClient:
    """DirectionsPort backed by the Mapbox Directions API."""

    def __init__(
        self,
        access_token: str,
        budget: RequestBudget,
        *,
        base_url: str = MAPBOX_BASE,
        timeout_seconds: float = DIRECTIONS_REQUEST_TIMEOUT_SECONDS,
        max_retries: int = DIRECTIONS_MAX_RETRIES,
        retry_backoff_seconds: float = DIRECTIONS_RETRY_BASE_DELAY_SECONDS,
        cache_ttl_seconds: float = DIRECTIONS_CACHE_TTL_SECONDS,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._token = access_token
        self._budget = budget
        self._base = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._max_retries = max(0, max_retries)
        self._backoff = max(0.0, retry_backoff_seconds)
        self._cache = _TTLCache(ttl_seconds=cache_ttl_seconds)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout_seconds,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _cache_key(self, origin: tuple[float, float], destination: tuple[float, float], profile: TravelProfile) -> str:
        o = f"{round(origin[0], 5)},{round(origin[1], 5)}"
        d = f"{round(destination[0], 5)},{round(destination[1], 5)}"
        return f"dir:{profile.value}:{o}:{d}"

    async def route(
        self,
        origin: tuple[float, float],
        destination: tuple[float, float],
        profile: TravelProfile,
    ) -> DirectionsResult:
        for lat, lng in (origin, destination):
            if not is_valid_coordinate(lat, lng):
                raise InvalidCoordinates(f"Invalid coordinates ({lat}, {lng})")

        ckey = self._cache_key(origin, destination, profile)
        cached = self._cache.get(ckey)
        if cached is not None:
            record_provider_outcome("cache_hit")
            logger.debug("telemetry directions_served cache_hit=true profile=%s", profile.value)
            return cached

        if not self._token:
            raise ProviderUnavailable("Mapbox access token not configured")

        url = f"{self._base}/directions/v5/mapbox/{profile.value}/{_coords_string(origin, destination)}"
        params = {
            "access_token": self._token,
            "geometries": "geojson",
            "overview": "simplified",
            "steps": "false",
        }
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            if not self._budget.try_acquire():
                logger.warning("telemetry directions_budget_exhausted profile=%s", profile.value)
                raise RateLimited("Directions request budget exhausted for this minute")
            try:
                resp = await self._client.get(url, params=params, timeout=self._timeout)
            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    "telemetry directions_timeout attempt=%s profile=%s",
                    attempt + 1,
                    profile.value,
                    extra={"attempt": attempt + 1, "profile": profile.value},
                )
            except httpx.TransportError as e:
                last_error = e
                logger.warning(
                    "telemetry directions_transport_error attempt=%s error=%s",
                    attempt + 1,
                    str(e),
                    extra={"attempt": attempt + 1, "error": str(e)},
                )
            else:
                status = resp.status_code
                if status == 429:
                    raise RateLimited("Directions provider returned 429")
                if status == 422:
                    raise InvalidCoordinates(f"Directions provider rejected coordinates: {resp.text[:200]}")
                if 400 <= status < 500:
                    # Bad token, bad profile, etc. Retrying cannot help.
                    raise ProviderUnavailable(f"Directions provider returned HTTP {status}")
                if status >= 500:
                    last_error = ProviderUnavailable(f"Directions provider returned HTTP {status}")
                    logger.warning(
                        "telemetry directions_server_error attempt=%s status=%s",
                        attempt + 1,
                        status,
                        extra={"attempt": attempt + 1, "status": status},
                    )
                else:
                    try:
                        data = resp.json()
                    except ValueError as e:
                        raise MalformedResponse("Directions response is not valid JSON") from e
                    result = _parse_directions_response(data, origin, destination)
                    self._cache.set(ckey, result)
                    logger.info(
                        "telemetry directions_fetched profile=%s distance_m=%.0f",
                        profile.value,
                        result.distance_m,
                        extra={"profile": profile.value, "distance_m": result.distance_m},
                    )
                    return result
            if attempt < self._max_retries:
                delay = min(self._backoff * (2**attempt), DIRECTIONS_RETRY_MAX_DELAY_SECONDS)
                await asyncio.sleep(delay)
        msg = "Directions provider unavailable (timeout or error after retries)."
        if last_error:
            raise ProviderUnavailable(msg) from last_error
        raise ProviderUnavailable(msg)

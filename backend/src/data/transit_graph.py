"""
In-memory BRT network: stops, routes in declared travel order, and the
sequence lookups used to validate boarding stops.

A graph is built once per dataset and never edited; reload builds a new one.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any

from src.data.geo import is_valid_coordinate
from src.data.models import DEFAULT_ROUTE_COLOR, BusRoute, Stop
from src.errors import DataIntegrityError

logger = logging.getLogger(__name__)

# Two declarations of the same stop id must agree to within this many degrees
COORDINATE_TOLERANCE_DEG = 1e-6

ROUTE_COLORS = {
    "1": "#E53E3E",
    "2": "#3182CE",
    "3": "#38A169",
    "4": "#D69E2E",
    "5": "#805AD5",
    "6": "#DD6B20",
    "7": "#319795",
}

_EV_ROUTE = re.compile(r"^EV-(\d+)$", re.IGNORECASE)


def _stop_id(raw: Any) -> str:
    if isinstance(raw, dict):
        value = raw.get("id", raw.get("stopId"))
    else:
        value = raw
    if value is None or str(value).strip() == "":
        raise DataIntegrityError(f"Stop entry without id: {raw!r}")
    return str(value).strip()


def _route_color(name: str, declared: str | None) -> str:
    if declared:
        return declared
    return ROUTE_COLORS.get(name, DEFAULT_ROUTE_COLOR)


class _StopDraft:
    """Mutable accumulator used only while parsing a dataset."""

    __slots__ = ("id", "name", "lat", "lng", "routes")

    def __init__(self, stop_id: str, name: str, lat: float, lng: float):
        self.id = stop_id
        self.name = name
        self.lat = lat
        self.lng = lng
        self.routes: set[str] = set()


class TransitGraph:
    """Read-only view over one loaded network dataset."""

    def __init__(self, stops: dict[str, Stop], routes: list[BusRoute]):
        self._stops = MappingProxyType(dict(stops))
        self._routes = MappingProxyType({r.name: r for r in routes})
        self._route_order = tuple(r.name for r in routes)
        # route name -> stop id -> first position in travel order
        index: dict[str, dict[str, int]] = {}
        for route in routes:
            positions: dict[str, int] = {}
            for i, stop in enumerate(route.stops):
                positions.setdefault(stop.id, i)
            index[route.name] = positions
        self._sequence = MappingProxyType({k: MappingProxyType(v) for k, v in index.items()})
        self._planning_stops = tuple(s for s in self._stops.values() if s.routes)

    # --- construction ---

    @classmethod
    def load(cls, dataset: dict[str, Any]) -> TransitGraph:
        """
        Parse a dataset of the form
        { routes: [{ routeName, color?, stops: [ {id|stopId, name, lat, lng, routes?} | "<id>" ] }], stops?: [...] }.
        Stop order inside each route is kept exactly as declared.
        """
        if not isinstance(dataset, dict):
            raise DataIntegrityError("Dataset must be a JSON object")
        raw_routes = dataset.get("routes")
        if not isinstance(raw_routes, list) or not raw_routes:
            raise DataIntegrityError("Dataset has no routes")

        drafts: dict[str, _StopDraft] = {}
        declared_routes: dict[str, set[str]] = {}

        def register(raw: dict[str, Any]) -> _StopDraft:
            sid = _stop_id(raw)
            try:
                lat = float(raw["lat"])
                lng = float(raw["lng"])
            except (KeyError, TypeError, ValueError) as e:
                raise DataIntegrityError(f"Stop {sid} has missing or invalid coordinates") from e
            if not is_valid_coordinate(lat, lng):
                raise DataIntegrityError(f"Stop {sid} has out-of-range coordinates ({lat}, {lng})")
            name = str(raw.get("name") or raw.get("stopName") or sid).strip()
            existing = drafts.get(sid)
            if existing is None:
                existing = _StopDraft(sid, name, lat, lng)
                drafts[sid] = existing
            elif (
                abs(existing.lat - lat) > COORDINATE_TOLERANCE_DEG
                or abs(existing.lng - lng) > COORDINATE_TOLERANCE_DEG
            ):
                raise DataIntegrityError(
                    f"Stop {sid} declared with conflicting coordinates "
                    f"({existing.lat}, {existing.lng}) vs ({lat}, {lng})"
                )
            declared = raw.get("routes")
            if isinstance(declared, list):
                declared_routes.setdefault(sid, set()).update(str(r) for r in declared)
            return existing

        catalog = dataset.get("stops") or []
        if not isinstance(catalog, list):
            raise DataIntegrityError("Top-level 'stops' must be a list")
        for raw in catalog:
            if not isinstance(raw, dict):
                raise DataIntegrityError(f"Invalid stop catalog entry: {raw!r}")
            register(raw)

        sequences: list[tuple[str, str, list[str]]] = []
        seen_names: set[str] = set()
        for raw_route in raw_routes:
            if not isinstance(raw_route, dict):
                raise DataIntegrityError(f"Invalid route entry: {raw_route!r}")
            name = str(raw_route.get("routeName") or raw_route.get("name") or "").strip()
            if not name:
                raise DataIntegrityError("Route without a name")
            if name in seen_names:
                raise DataIntegrityError(f"Route {name} declared twice")
            seen_names.add(name)
            raw_stops = raw_route.get("stops")
            if not isinstance(raw_stops, list) or not raw_stops:
                raise DataIntegrityError(f"Route {name} has no stop sequence")
            ids: list[str] = []
            for entry in raw_stops:
                if isinstance(entry, dict):
                    draft = register(entry)
                else:
                    sid = _stop_id(entry)
                    draft = drafts.get(sid)
                    if draft is None:
                        raise DataIntegrityError(f"Route {name} references unknown stop {sid}")
                draft.routes.add(name)
                ids.append(draft.id)
            sequences.append((name, _route_color(name, raw_route.get("color")), ids))

        for sid, names in declared_routes.items():
            unknown = names - seen_names
            if unknown:
                raise DataIntegrityError(
                    f"Stop {sid} references route(s) with no known sequence: {', '.join(sorted(unknown))}"
                )
            drafts[sid].routes.update(names)

        stops = {
            d.id: Stop(id=d.id, name=d.name, lat=d.lat, lng=d.lng, routes=frozenset(d.routes))
            for d in drafts.values()
        }
        routes = [
            BusRoute(name=name, stops=tuple(stops[sid] for sid in ids), color=color)
            for name, color, ids in sequences
        ]
        logger.info("telemetry network_loaded stops=%s routes=%s", len(stops), len(routes))
        return cls(stops, routes)

    # --- lookups ---

    @property
    def stops(self) -> tuple[Stop, ...]:
        return tuple(self._stops.values())

    @property
    def planning_stops(self) -> tuple[Stop, ...]:
        """Stops served by at least one route."""
        return self._planning_stops

    @property
    def routes(self) -> tuple[BusRoute, ...]:
        return tuple(self._routes[name] for name in self._route_order)

    def get_stop(self, stop_id: str) -> Stop | None:
        return self._stops.get(stop_id)

    def find_stop_by_name(self, name: str) -> Stop | None:
        wanted = name.strip().lower()
        for stop in self._stops.values():
            if stop.name.lower() == wanted:
                return stop
        return None

    def route(self, name: str) -> BusRoute | None:
        return self._routes.get(name)

    def stops_served_by(self, route_name: str) -> tuple[Stop, ...]:
        route = self._routes.get(route_name)
        return route.stops if route else ()

    def routes_shared_between(self, stop_a: Stop, stop_b: Stop) -> frozenset[str]:
        return stop_a.routes & stop_b.routes

    def sequence_index(self, route_name: str, stop_id: str) -> int | None:
        """Position of stop_id in route_name's travel order, or None if the route does not serve it."""
        positions = self._sequence.get(route_name)
        if positions is None:
            return None
        return positions.get(stop_id)

    def precedes(self, route_name: str, stop_id: str, other_id: str) -> bool:
        """True when stop_id comes strictly before other_id on route_name."""
        a = self.sequence_index(route_name, stop_id)
        b = self.sequence_index(route_name, other_id)
        return a is not None and b is not None and a < b

    def stops_between(self, route_name: str, from_stop_id: str, to_stop_id: str) -> tuple[Stop, ...]:
        """Stops travelled from from_stop_id to to_stop_id inclusive; empty if not in travel order."""
        if not self.precedes(route_name, from_stop_id, to_stop_id):
            return ()
        start = self.sequence_index(route_name, from_stop_id)
        end = self.sequence_index(route_name, to_stop_id)
        return self._routes[route_name].stops[start : end + 1]

    def search_stops(self, query: str, limit: int = 10) -> list[Stop]:
        """Case-insensitive name search: exact match first, then prefix, then contains."""
        q = query.strip().lower()
        if not q:
            return []
        scored: list[tuple[int, str, Stop]] = []
        for stop in self._stops.values():
            name = stop.name.lower()
            if q not in name:
                continue
            if name == q:
                rank = 0
            elif name.startswith(q):
                rank = 1
            else:
                rank = 2
            scored.append((rank, name, stop))
        scored.sort(key=lambda x: (x[0], x[1]))
        return [stop for _, _, stop in scored[:limit]]

    def sorted_route_names(self) -> list[str]:
        """Numbered routes in numeric order, then EV-n routes, then anything else by name."""

        def key(name: str) -> tuple[int, int, str]:
            if name.isdigit():
                return (0, int(name), name)
            m = _EV_ROUTE.match(name)
            if m:
                return (1, int(m.group(1)), name)
            return (2, 0, name)

        return sorted(self._route_order, key=key)


def load_graph_file(path: str | Path) -> TransitGraph:
    """Load a network dataset from a JSON file."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise DataIntegrityError(f"Network dataset not found: {path}") from e
    except json.JSONDecodeError as e:
        raise DataIntegrityError(f"Network dataset is not valid JSON: {path}: {e}") from e
    return TransitGraph.load(data)

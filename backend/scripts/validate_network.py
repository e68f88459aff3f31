#!/usr/bin/env python3
"""
Validate a BRT network dataset before deploying it (or before POST /network/reload).

Dataset shape:
  { "stops": [{id, name, lat, lng}], "routes": [{routeName, color?, stops: [<id> | {id, name, lat, lng}]}] }

Checks the same rules the server applies at startup: every route has a non-empty
stop sequence, stop ids resolve, coordinates are in range and agree across routes.

Run: python scripts/validate_network.py --data data/bus_routes.json
"""
import argparse
import sys
from pathlib import Path

# Add backend root to path
backend = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(backend))

from src.data.transit_graph import load_graph_file
from src.errors import DataIntegrityError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate a BRT network JSON dataset")
    parser.add_argument(
        "--data",
        default=backend / "data" / "bus_routes.json",
        type=Path,
        help="Path to network JSON (routes with ordered stop sequences)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print every route with its stop sequence",
    )
    args = parser.parse_args(argv)

    try:
        graph = load_graph_file(args.data)
    except DataIntegrityError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    unserved = [s for s in graph.stops if not s.routes]
    print(f"OK: {len(graph.stops)} stops, {len(graph.routes)} routes in {args.data}")
    if unserved:
        print(f"Warning: {len(unserved)} stop(s) not served by any route: {', '.join(s.id for s in unserved)}")
    if args.verbose:
        for name in graph.sorted_route_names():
            route = graph.route(name)
            print(f"  {name} ({route.color}): {' -> '.join(s.name for s in route.stops)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

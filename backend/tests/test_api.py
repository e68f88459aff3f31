"""HTTP API tests: stops, routes, journey planning, reload and auth."""
import json

import pytest
from fastapi.testclient import TestClient

import main
from conftest import NETWORK_FILE


@pytest.fixture
def client(monkeypatch):
    """App over the shipped network with no Mapbox token, so every leg is a local estimate."""
    monkeypatch.setattr(main, "NETWORK_DATA", NETWORK_FILE)
    monkeypatch.setattr(main.settings, "mapbox_access_token", "")
    with TestClient(main.app) as c:
        yield c


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_metrics_include_budget(client):
    r = client.get("/metrics")
    assert r.status_code == 200
    data = r.json()
    assert "requests_total" in data
    assert "directions_estimated" in data
    assert data["budget_limit_per_window"] == main.settings.directions_budget_per_minute


def test_request_id_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
    assert client.get("/health").headers["X-Request-ID"]


# --- Stops ---


def test_search_stops(client):
    r = client.get("/stops", params={"q": "frere"})
    assert r.status_code == 200
    stops = r.json()["stops"]
    assert [s["stop_name"] for s in stops] == ["Frere Hall"]
    assert stops[0]["routes"] == ["1", "2", "EV-1"]


def test_list_stops_without_query(client):
    r = client.get("/stops", params={"limit": 5})
    assert r.status_code == 200
    assert len(r.json()["stops"]) == 5


def test_stops_limit_validated(client):
    assert client.get("/stops", params={"limit": 0}).status_code == 400


def test_stops_nearby(client):
    r = client.get("/stops/nearby", params={"lat": 24.8607, "lng": 67.0011, "radius_m": 1000})
    assert r.status_code == 200
    stops = r.json()["stops"]
    assert stops[0]["stop_id"] == "jama_cloth"
    assert 500 < stops[0]["distance_m"] < 700


def test_stops_nearby_validation(client):
    assert client.get("/stops/nearby", params={"lat": 99, "lng": 67.0}).status_code == 400
    assert client.get("/stops/nearby", params={"lat": 24.8, "lng": 67.0, "radius_m": 50}).status_code == 400


def test_get_stop(client):
    r = client.get("/stops/tower")
    assert r.status_code == 200
    assert r.json()["stop_name"] == "Tower"
    assert client.get("/stops/nowhere").status_code == 404
    assert client.get("/stops/bad id!").status_code == 400


# --- Routes ---


def test_list_routes_sorted(client):
    r = client.get("/routes")
    assert r.status_code == 200
    routes = r.json()["routes"]
    assert [x["name"] for x in routes] == ["1", "2", "EV-1"]
    assert routes[1]["stop_count"] == 6


def test_route_detail(client):
    r = client.get("/routes/EV-1")
    assert r.status_code == 200
    data = r.json()
    assert data["color"] == "#2F855A"
    assert data["stops"][0]["stop_id"] == "clifton_bridge"
    assert client.get("/routes/99").status_code == 404


def test_route_between(client):
    r = client.get("/routes/2/between", params={"from_stop_id": "tower", "to_stop_id": "frere_hall"})
    assert r.status_code == 200
    assert [s["stop_id"] for s in r.json()["stops"]] == ["tower", "jama_cloth", "regal_chowk", "frere_hall"]
    reverse = client.get("/routes/2/between", params={"from_stop_id": "frere_hall", "to_stop_id": "tower"})
    assert reverse.json()["stops"] == []
    assert client.get("/routes/2/between").status_code == 400


# --- Journey ---


def test_post_journey_to_frere_hall(client):
    r = client.post(
        "/journey",
        json={
            "lat": 24.8607,
            "lng": 67.0011,
            "destination_lat": 24.8482,
            "destination_lng": 67.0305,
            "destination_name": "Frere Hall",
        },
    )
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "BUS"
    assert data["used_estimates"] is True
    assert data["destination_name"] == "Frere Hall"
    journey = data["journey"]
    assert journey["destination_stop"]["stop_name"] == "Frere Hall"
    assert journey["boarding_stop"]["stop_name"] == "Jama Cloth"
    assert journey["routes_used"] == ["2"]
    assert [s["type"] for s in journey["segments"]] == ["RICKSHAW", "BUS", "WALK"]
    assert journey["segments"][-1]["distance_m"] < 50
    assert "Take 2 bus from Jama Cloth to Frere Hall" in journey["instructions"]


def test_post_journey_no_stops_in_range(client):
    r = client.post(
        "/journey",
        json={"lat": 24.8607, "lng": 67.0011, "destination_lat": 25.5, "destination_lng": 68.5},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "NO_STOPS_IN_RANGE"
    assert data["journey"]["routes_used"] == []
    assert data["journey"]["boarding_stop"] is None


def test_post_journey_rejects_bad_coordinates(client):
    r = client.post(
        "/journey",
        json={"lat": 124.86, "lng": 67.0011, "destination_lat": 24.8482, "destination_lng": 67.0305},
    )
    assert r.status_code == 422


# --- Network reload ---


def test_reload_network(client):
    r = client.post("/network/reload")
    assert r.status_code == 200
    assert r.json() == {"stops": 13, "routes": 3}


def test_reload_keeps_old_network_on_error(client, monkeypatch, tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"routes": [{"routeName": "1", "stops": []}]}), encoding="utf-8")
    monkeypatch.setattr(main, "NETWORK_DATA", broken)
    r = client.post("/network/reload")
    assert r.status_code == 409
    assert "no stop sequence" in r.json()["detail"]
    assert client.get("/stops/frere_hall").status_code == 200


def test_reload_replaces_network(client, monkeypatch, tmp_path):
    smaller = tmp_path / "small.json"
    smaller.write_text(
        json.dumps(
            {
                "stops": [
                    {"id": "p", "name": "Pakistan Chowk", "lat": 24.855, "lng": 67.010},
                    {"id": "q", "name": "Quaidabad", "lat": 24.860, "lng": 67.200},
                ],
                "routes": [{"routeName": "9", "stops": ["p", "q"]}],
            }
        ),
        encoding="utf-8",
    )
    monkeypatch.setattr(main, "NETWORK_DATA", smaller)
    assert client.post("/network/reload").json() == {"stops": 2, "routes": 1}
    assert client.get("/stops/frere_hall").status_code == 404
    assert [x["name"] for x in client.get("/routes").json()["routes"]] == ["9"]


def test_startup_fails_on_broken_network(monkeypatch, tmp_path):
    monkeypatch.setattr(main, "NETWORK_DATA", tmp_path / "missing.json")
    with pytest.raises(Exception):
        with TestClient(main.app):
            pass

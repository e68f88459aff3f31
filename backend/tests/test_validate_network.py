"""Tests for the network validation script."""
import importlib.util
import json
from pathlib import Path

from conftest import NETWORK_FILE

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "validate_network.py"


def _load_script():
    spec = importlib.util.spec_from_file_location("validate_network", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_shipped_network_is_valid(capsys):
    assert _load_script().main(["--data", str(NETWORK_FILE), "--verbose"]) == 0
    out = capsys.readouterr().out
    assert "OK: 13 stops, 3 routes" in out
    assert "Keamari -> Tower -> Jama Cloth" in out


def test_broken_network_fails(tmp_path, capsys):
    path = tmp_path / "broken.json"
    path.write_text(json.dumps({"routes": [{"routeName": "1", "stops": ["nope"]}]}), encoding="utf-8")
    assert _load_script().main(["--data", str(path)]) == 1
    assert "unknown stop nope" in capsys.readouterr().err


def test_unserved_stops_reported(tmp_path, capsys):
    path = tmp_path / "net.json"
    path.write_text(
        json.dumps(
            {
                "stops": [
                    {"id": "a", "name": "A", "lat": 24.8, "lng": 67.0},
                    {"id": "b", "name": "B", "lat": 24.9, "lng": 67.1},
                    {"id": "c", "name": "C", "lat": 24.95, "lng": 67.2},
                ],
                "routes": [{"routeName": "1", "stops": ["a", "b"]}],
            }
        ),
        encoding="utf-8",
    )
    assert _load_script().main(["--data", str(path)]) == 0
    assert "not served by any route: c" in capsys.readouterr().out

from types import SimpleNamespace

import pandas as pd

import get_gps_coordinates_openstreetmap as geocode
import plot_graph
import plot_map
import wayfinding
from conftest import BUILDINGS
from graph_model import parse_map_features


class FakeGeolocator:
    def __init__(self, known):
        self.known = known

    def geocode(self, name):
        hit = self.known.get(name)
        return SimpleNamespace(latitude=hit[0], longitude=hit[1]) if hit else None


def test_wayfinding_saves_route_map(api, tmp_path, capsys):
    answers = iter(["9", "x", "2", "42.4219", "-76.4952"])
    out = tmp_path / "map.html"
    assert wayfinding.main(api, input_fn=lambda _prompt: next(answers), out_path=str(out)) == 0
    text = capsys.readouterr().out
    assert "Route to Library" in text
    assert "Total distance" in text
    assert out.exists()


def test_wayfinding_without_route(api, session, tmp_path, capsys):
    session.on("GET", "/map/navigateTo", {"path": []})
    answers = iter(["1", "42.4219", "-76.4952"])
    assert wayfinding.main(api, input_fn=lambda _prompt: next(answers), out_path=str(tmp_path / "m.html")) == 1
    assert "No route found." in capsys.readouterr().out


def test_plot_graph_writes_png(api, tmp_path):
    markers, edges = parse_map_features(api.get_all_map_features())
    out = tmp_path / "graph.png"
    G = plot_graph.plot_graph(markers, edges, str(out), dpi=50)
    assert out.stat().st_size > 0
    # three bidirectional edges count twice
    assert G.number_of_edges() == 7


def test_plot_map_skips_buildings_without_coordinates():
    df = plot_map.buildings_frame(BUILDINGS + [{"id": "B3", "name": "Nowhere", "lat": None, "lng": "?"}])
    assert list(df["name"]) == ["Library", "Gym"]
    m = plot_map.building_map(BUILDINGS)
    assert "Library" in m.get_root().render()


def test_geocode_and_register(api, session, tmp_path, monkeypatch):
    monkeypatch.setattr(geocode.time, "sleep", lambda _s: None)
    geolocator = FakeGeolocator({"Library, Ithaca NY": (42.42, -76.49)})
    out = tmp_path / "buildings.csv"
    rc = geocode.main(
        ["--register", "Library, Ithaca NY", "Atlantis"],
        api=api, geolocator=geolocator, out_path=str(out),
    )
    assert rc == 0
    df = pd.read_csv(out)
    assert list(df["name"]) == ["Library, Ithaca NY"]
    assert df["lat"][0] == 42.42
    posted = session.calls_to("POST", "/building/")
    assert len(posted) == 1
    assert posted[0].body["name"] == "Library, Ithaca NY"
    assert posted[0].body["polyGon"] is None

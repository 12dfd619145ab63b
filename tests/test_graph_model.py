import pytest

from graph_model import (
    EdgeIndexEntry,
    GraphImportError,
    MarkerNode,
    edge_key,
    edges_geojson,
    export_geojson,
    import_geojson,
    parse_map_features,
    to_networkx,
)


def sample():
    markers = [MarkerNode("a", 1.0, 2.0), MarkerNode("b", 1.1, 2.1), MarkerNode("c", 1.2, 2.2)]
    edges = [EdgeIndexEntry("a__b", "a", "b", True), EdgeIndexEntry("b__c", "b", "c", False)]
    return markers, edges


def test_edge_key_is_order_independent():
    assert edge_key("b", "a") == edge_key("a", "b") == "a__b"
    assert edge_key("n-10", "n-2") == "n-10__n-2"


def test_parse_map_features_skips_bad_records():
    markers, edges = parse_map_features(
        {
            "nodes": [
                {"id": 1, "lng": "1.5", "lat": 2},
                {"id": "bad", "lng": "x", "lat": 2},
                {"id": "nan", "lng": float("nan"), "lat": 2},
                {"lng": 1, "lat": 2},
            ],
            "edges": [{"key": "1__2", "from": 1, "to": 2}, {"from": "1"}],
        }
    )
    assert markers == [MarkerNode("1", 1.5, 2.0)]
    assert edges == [EdgeIndexEntry("1__2", "1", "2", False)]
    assert parse_map_features(None) == ([], [])


def test_edges_geojson_properties_and_filters():
    markers, edges = sample()
    edges = edges + [EdgeIndexEntry("b__z", "b", "z")]
    fc = edges_geojson(markers, edges, nav_edges={"a__b"}, nav_mode_active=True, path={"b__c"})
    props = {f["properties"]["key"]: f["properties"] for f in fc["features"]}
    assert set(props) == {"a__b", "b__c"}
    assert props["a__b"]["ada"] is True and props["a__b"]["bidir"] is True
    assert props["b__c"]["path"] is True and props["b__c"]["bidir"] is False

    only = edges_geojson(markers, edges, nav_edges={"a__b"}, nav_mode_active=True, show_only_nav_mode=True)
    assert [f["properties"]["key"] for f in only["features"]] == ["a__b"]

    # tags only render while the nav-mode view is active
    off = edges_geojson(markers, edges, nav_edges={"a__b"}, nav_mode_active=False, show_only_nav_mode=True)
    assert len(off["features"]) == 2
    assert not any(f["properties"]["ada"] for f in off["features"])


def test_export_then_import_keeps_nodes_and_makes_edges_bidirectional():
    markers, edges = sample()
    fc = export_geojson(markers, edges)
    assert [f["geometry"]["type"] for f in fc["features"]] == ["Point"] * 3 + ["LineString"] * 2

    new_markers, new_edges = import_geojson(fc)
    assert new_markers == markers
    assert [(e.key, e.bi_directional) for e in new_edges] == [("a__b", True), ("b__c", True)]


def test_import_dedupes_edges_and_reads_property_ids():
    fc = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"id": "x"}, "geometry": {"type": "Point", "coordinates": [1, 2]}},
            {"type": "Feature", "id": "y", "geometry": {"type": "Point", "coordinates": [3, 4]}},
            {"type": "Feature", "properties": {}, "geometry": {"type": "Point", "coordinates": [3]}},
            {"type": "Feature", "properties": {"from": "x", "to": "y"}, "geometry": {"type": "LineString", "coordinates": []}},
            {"type": "Feature", "properties": {"from": "y", "to": "x"}, "geometry": {"type": "LineString", "coordinates": []}},
            {"type": "Feature", "properties": {"from": "y"}, "geometry": {"type": "LineString", "coordinates": []}},
        ],
    }
    markers, edges = import_geojson(fc)
    assert [m.id for m in markers] == ["x", "y"]
    assert edges == [EdgeIndexEntry("x__y", "x", "y", True)]


def test_import_rejects_bad_documents():
    with pytest.raises(GraphImportError):
        import_geojson({"type": "Feature"})
    with pytest.raises(GraphImportError):
        import_geojson([])
    dup = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "id": "x", "geometry": {"type": "Point", "coordinates": [1, 2]}},
            {"type": "Feature", "id": "x", "geometry": {"type": "Point", "coordinates": [3, 4]}},
        ],
    }
    with pytest.raises(GraphImportError):
        import_geojson(dup)


def test_to_networkx_respects_one_way_edges():
    markers, edges = sample()
    G = to_networkx(markers + [MarkerNode("bl", 1.0, 2.1, True)], edges + [EdgeIndexEntry("c__q", "c", "q")])
    assert G.has_edge("a", "b") and G.has_edge("b", "a")
    assert G.has_edge("b", "c") and not G.has_edge("c", "b")
    assert not G.has_node("q")
    assert G["a"]["b"]["weight"] > 0
    assert G["b"]["c"]["key"] == "b__c"
    assert G.nodes["bl"]["blue_light"] is True

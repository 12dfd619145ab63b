from graph_model import parse_map_features
from map_render import make_map, make_map_html
from route_builder import build_route

from conftest import EDGES, LIBRARY_POLY, NODES


def test_route_map_html():
    markers, edges = parse_map_features({"nodes": NODES, "edges": EDGES})
    route = build_route(["a__b", "b__c"], markers, edges)
    m = make_map(
        markers, edges,
        path_keys=route.keys,
        route_coords=route.coords,
        show_nodes=False,
        building_poly=LIBRARY_POLY,
        building_nodes={"d"},
        path_node_ids=route.node_ids,
        dest_pos=(-76.4934, 42.4225),
    )
    html = m.get_root().render()
    assert "Blue light e" in html
    assert "one way" in html
    assert "<iframe" in make_map_html(markers, edges)


def test_empty_map_uses_default_view():
    m = make_map([], [])
    assert m.location == [42.422108, -76.494131]

"""
Folium rendering of the campus graph, routes and navigation overlays.
"""

import folium

from config import SETTINGS

EDGE_BIDIR = "#1E88E5"
EDGE_ONEWAY = "#F57C00"
EDGE_NAVMODE = "#16a34a"
ROUTE_COLOR = "#111827"
BLUE_LIGHT_ROUTE = "#ffd200"
ACCURACY_COLOR = "#3b82f6"


def _center(markers, user_pos=None, dest_pos=None):
    if dest_pos is not None:
        return [dest_pos[1], dest_pos[0]], 18
    if user_pos is not None:
        return [user_pos.lat, user_pos.lng], 17
    if markers:
        return [sum(m.lat for m in markers) / len(markers), sum(m.lng for m in markers) / len(markers)], 17
    v = SETTINGS.DEFAULT_VIEW
    return [v["lat"], v["lng"]], 16


def _latlngs(coords):
    # GeoJSON is [lng, lat]; folium wants (lat, lng)
    return [(c[1], c[0]) for c in coords]


def make_map(
    markers,
    edges,
    path_keys=(),
    route_coords=None,
    nav_edges=(),
    show_nodes=True,
    building_poly=None,
    building_nodes=None,
    path_node_ids=(),
    user_pos=None,
    accuracy_ring=None,
    dest_pos=None,
    route_color=ROUTE_COLOR,
):
    """Render a folium map with background edges and an emphasized route."""
    center, zoom = _center(markers, user_pos, dest_pos)
    tl, br = SETTINGS.TOP_LEFT, SETTINGS.BOTTOM_RIGHT
    m = folium.Map(
        location=center, zoom_start=zoom, tiles="OpenStreetMap",
        max_bounds=True, min_lat=br["lat"], max_lat=tl["lat"], min_lon=tl["lng"], max_lon=br["lng"],
    )

    coord = {n.id: (n.lat, n.lng) for n in markers}
    path_keys = set(path_keys)
    nav_edges = set(nav_edges)
    path_node_ids = set(path_node_ids)

    # Draw all edges lightly; the route is drawn on top below
    for e in edges:
        a, b = coord.get(e.frm), coord.get(e.to)
        if a is None or b is None:
            continue
        color = EDGE_NAVMODE if e.key in nav_edges else (EDGE_BIDIR if e.bi_directional else EDGE_ONEWAY)
        on_path = e.key in path_keys
        folium.PolyLine(
            [a, b],
            color=route_color if on_path else color,
            weight=6 if on_path else 2,
            opacity=0.95 if on_path else 0.4,
            tooltip=f"{e.frm} → {e.to}" if e.bi_directional else f"{e.frm} → {e.to} (one way)",
        ).add_to(m)

    if route_coords and len(route_coords) >= 2:
        folium.PolyLine(_latlngs(route_coords), color=route_color, weight=7, opacity=0.95).add_to(m)

    if building_poly:
        folium.GeoJson(
            building_poly,
            name="building",
            style_function=lambda _f: {"color": "#f59e0b", "fillColor": "#fbbf24", "fillOpacity": 0.3, "weight": 2},
        ).add_to(m)

    for n in markers:
        if n.is_blue_light:
            folium.CircleMarker(
                location=[n.lat, n.lng], radius=7, popup=f"Blue light {n.id}",
                color="#1d4ed8", fill=True, fill_opacity=1,
            ).add_to(m)
            continue
        in_building = building_nodes is not None and n.id in building_nodes
        if not show_nodes and not in_building and n.id not in path_node_ids:
            continue
        color = "red" if n.id in path_node_ids else ("#f59e0b" if in_building else "blue")
        folium.CircleMarker(
            location=[n.lat, n.lng], radius=4, popup=str(n.id),
            color=color, fill=True, fill_opacity=0.9,
        ).add_to(m)

    if accuracy_ring:
        folium.GeoJson(
            accuracy_ring,
            name="accuracy",
            style_function=lambda _f: {"color": ACCURACY_COLOR, "fillColor": ACCURACY_COLOR, "fillOpacity": 0.15, "weight": 2},
        ).add_to(m)

    if user_pos is not None:
        folium.CircleMarker(
            location=[user_pos.lat, user_pos.lng], radius=8, popup="Your Location",
            color="green", fill=True, fill_opacity=1,
        ).add_to(m)

    if dest_pos is not None:
        folium.Marker(location=[dest_pos[1], dest_pos[0]], popup="Destination").add_to(m)

    return m


def make_map_html(*args, **kwargs) -> str:
    return make_map(*args, **kwargs)._repr_html_()

"""
Route assembly.

The backend answers a route request with an unordered collection of edge keys.
These helpers turn that collection back into an ordered walk over the node
graph and into coordinates the map can draw.
"""

import logging
import math
from dataclasses import dataclass, field

import networkx as nx

from graph_model import haversine_m

log = logging.getLogger(__name__)

EARTH_RADIUS_M = 6378137.0


@dataclass
class Route:
    keys: list
    node_ids: list
    coords: list = field(default_factory=list)

    @property
    def length_m(self) -> float:
        return route_length_m(self.coords)


def make_lookups(markers, edges):
    nodes_by_id = {str(m.id): (m.lng, m.lat) for m in markers}
    edges_by_key = {str(e.key): (str(e.frm), str(e.to)) for e in edges}
    return nodes_by_id, edges_by_key


def path_keys_from_response(resp) -> list:
    """Edge keys of a backend route answer; anything but a list/set counts as no route."""
    path = (resp or {}).get("path") if isinstance(resp, dict) else None
    if isinstance(path, (list, tuple, set, frozenset)):
        return [str(k) for k in path]
    return []


def order_node_ids_from_path_keys(path_keys, edges_by_key) -> list:
    """
    Rebuild the node sequence of a path from its edge keys.

    Edge direction is ignored. The walk starts at the first dead end (a node
    with a single neighbour) or, for a closed loop, at the first node seen, and
    always steps to the first unvisited neighbour. Keys missing from
    edges_by_key are skipped. Only the component containing the start is
    returned.
    """
    adj = nx.Graph()
    for k in path_keys:
        e = edges_by_key.get(str(k))
        if e is None:
            log.warning("Route key %s is not in the edge index", k)
            continue
        adj.add_edge(e[0], e[1])

    if adj.number_of_nodes() == 0:
        return []

    endpoints = [n for n in adj.nodes if len(adj.adj[n]) == 1]
    start = endpoints[0] if endpoints else next(iter(adj.nodes))

    ordered = []
    visited = set()
    cur, prev = start, None
    while cur is not None:
        ordered.append(cur)
        visited.add(cur)
        nxt = next((n for n in adj.adj[cur] if n != prev and n not in visited), None)
        prev, cur = cur, nxt
    return ordered


def node_ids_to_coords(ordered_ids, nodes_by_id) -> list:
    coords = []
    for node_id in ordered_ids:
        p = nodes_by_id.get(str(node_id))
        if p is not None:
            coords.append([p[0], p[1]])
    return coords


def build_route(path_keys, markers, edges):
    """Ordered route for the given keys, or None if it has fewer than two points."""
    if not path_keys:
        return None
    nodes_by_id, edges_by_key = make_lookups(markers, edges)
    ordered = order_node_ids_from_path_keys(path_keys, edges_by_key)
    coords = node_ids_to_coords(ordered, nodes_by_id)
    if len(coords) < 2:
        return None
    return Route(keys=[str(k) for k in path_keys], node_ids=ordered, coords=coords)


def route_segments(path_keys, markers, edges) -> list:
    """One two-point segment per known edge; the path may be discontinuous."""
    nodes_by_id, edges_by_key = make_lookups(markers, edges)
    segments = []
    for key in path_keys:
        e = edges_by_key.get(str(key))
        if e is None:
            continue
        a, b = nodes_by_id.get(e[0]), nodes_by_id.get(e[1])
        if a is None or b is None:
            continue
        segments.append([[a[0], a[1]], [b[0], b[1]]])
    return segments


def route_steps(route, markers) -> list:
    """(text, metres) per consecutive node pair; pairs with an unknown node are skipped."""
    by_id = {m.id: m for m in markers}
    steps = []
    for a, b in zip(route.node_ids[:-1], route.node_ids[1:]):
        if a not in by_id or b not in by_id:
            continue
        d = haversine_m(by_id[a].lat, by_id[a].lng, by_id[b].lat, by_id[b].lng)
        steps.append((f"{a} → {b} ({d:.1f} m)", d))
    return steps


def longest_segment(segments):
    best, best_len = None, -math.inf
    for seg in segments:
        (x1, y1), (x2, y2) = seg[0], seg[-1]
        length = math.hypot(x1 - x2, y1 - y2)
        if length > best_len:
            best, best_len = seg, length
    return best


# --------------------------------------------------------------------
# Geometry
# --------------------------------------------------------------------
def bearing_to(lng1, lat1, lng2, lat2) -> float:
    """Initial compass bearing from point 1 to point 2, in [0, 360)."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dl = math.radians(lng2 - lng1)
    y = math.sin(dl) * math.cos(p2)
    x = math.cos(p1) * math.sin(p2) - math.sin(p1) * math.cos(p2) * math.cos(dl)
    return math.degrees(math.atan2(y, x)) % 360.0


def route_length_m(coords) -> float:
    return sum(
        haversine_m(a[1], a[0], b[1], b[0])
        for a, b in zip(coords[:-1], coords[1:])
    )


def bounds_for(coords):
    """[[west, south], [east, north]] around the coordinates."""
    if len(coords) < 2:
        return None
    lngs = [c[0] for c in coords]
    lats = [c[1] for c in coords]
    return [[min(lngs), min(lats)], [max(lngs), max(lats)]]


def make_circle_geojson(lng, lat, radius_m, points=64):
    """Closed polygon approximating a circle of radius_m around (lng, lat)."""
    d = radius_m / EARTH_RADIUS_M
    lon, lat_r = math.radians(lng), math.radians(lat)
    coords = []
    for i in range(points + 1):
        brng = i * 2 * math.pi / points
        lat2 = math.asin(math.sin(lat_r) * math.cos(d) + math.cos(lat_r) * math.sin(d) * math.cos(brng))
        lon2 = lon + math.atan2(
            math.sin(brng) * math.sin(d) * math.cos(lat_r),
            math.cos(d) - math.sin(lat_r) * math.sin(lat2),
        )
        coords.append([math.degrees(lon2), math.degrees(lat2)])
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {}, "geometry": {"type": "Polygon", "coordinates": [coords]}}
        ],
    }

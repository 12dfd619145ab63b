"""
In-memory campus graph: nodes (markers), the edge index and their GeoJSON views.
"""

import logging
import math
from dataclasses import dataclass

import networkx as nx

log = logging.getLogger(__name__)


class GraphImportError(ValueError):
    """Raised when an imported GeoJSON document cannot become a graph."""


@dataclass
class MarkerNode:
    id: str
    lng: float
    lat: float
    is_blue_light: bool = False

    def to_dict(self):
        return {"id": self.id, "lng": self.lng, "lat": self.lat, "isBlueLight": self.is_blue_light}


@dataclass
class EdgeIndexEntry:
    key: str
    frm: str
    to: str
    bi_directional: bool = True

    def to_dict(self):
        return {"key": self.key, "from": self.frm, "to": self.to, "biDirectional": self.bi_directional}


def edge_key(a: str, b: str) -> str:
    """Order-independent key for the edge between a and b."""
    return "__".join(sorted([str(a), str(b)]))


def haversine_m(lat1, lon1, lat2, lon2) -> float:
    """Great-circle distance in meters."""
    R = 6371000.0
    from math import radians, sin, cos, asin, sqrt
    p1, p2 = radians(lat1), radians(lat2)
    dphi = radians(lat2 - lat1)
    dlambda = radians(lon2 - lon1)
    a = sin(dphi / 2) ** 2 + cos(p1) * cos(p2) * sin(dlambda / 2) ** 2
    return 2 * R * asin(sqrt(a))


# --------------------------------------------------------------------
# Backend payloads
# --------------------------------------------------------------------
def parse_nodes(raw_nodes) -> list:
    markers = []
    for n in raw_nodes or []:
        try:
            lng = float(n["lng"])
            lat = float(n["lat"])
            if not (math.isfinite(lng) and math.isfinite(lat)):
                raise ValueError("non-finite coordinate")
            markers.append(MarkerNode(str(n["id"]), lng, lat, bool(n.get("isBlueLight", False))))
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Skipping node due to bad data: %s (%r)", e, n)
    return markers


def parse_edges(raw_edges) -> list:
    edges = []
    for e in raw_edges or []:
        try:
            edges.append(
                EdgeIndexEntry(
                    str(e["key"]),
                    str(e["from"]),
                    str(e["to"]),
                    bool(e.get("biDirectional", False)),
                )
            )
        except (KeyError, TypeError) as err:
            log.warning("Bad edge: %s (%r)", err, e)
    return edges


def parse_map_features(resp):
    """Split a backend {nodes, edges} payload into typed markers and edges."""
    resp = resp or {}
    return parse_nodes(resp.get("nodes")), parse_edges(resp.get("edges"))


# --------------------------------------------------------------------
# GeoJSON views
# --------------------------------------------------------------------
def edges_geojson(markers, edges, nav_edges=(), nav_mode_active=False, show_only_nav_mode=False, path=()):
    coord = {m.id: [m.lng, m.lat] for m in markers}
    nav_edges = set(nav_edges)
    path = set(path)

    features = []
    for e in edges:
        a = coord.get(e.frm)
        b = coord.get(e.to)
        if a is None or b is None:
            continue
        tagged = e.key in nav_edges
        if show_only_nav_mode and nav_mode_active and not tagged:
            continue
        features.append(
            {
                "type": "Feature",
                "properties": {
                    "key": e.key,
                    "from": e.frm,
                    "to": e.to,
                    "ada": tagged and nav_mode_active,
                    "bidir": bool(e.bi_directional),
                    "path": e.key in path,
                },
                "geometry": {"type": "LineString", "coordinates": [a, b]},
            }
        )
    return {"type": "FeatureCollection", "features": features}


def nodes_geojson(markers):
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "id": m.id,
                "properties": {"id": m.id, "isBlueLight": m.is_blue_light},
                "geometry": {"type": "Point", "coordinates": [m.lng, m.lat]},
            }
            for m in markers
        ],
    }


def export_geojson(markers, edges):
    """Nodes as Points followed by edges as LineStrings, in one collection."""
    node_features = [
        {
            "type": "Feature",
            "id": m.id,
            "properties": {"id": m.id},
            "geometry": {"type": "Point", "coordinates": [m.lng, m.lat]},
        }
        for m in markers
    ]
    return {
        "type": "FeatureCollection",
        "features": node_features + edges_geojson(markers, edges)["features"],
    }


def import_geojson(fc):
    """
    Read markers and edges back from an exported FeatureCollection.
    Imported edges are always bidirectional and deduplicated by key.
    """
    if not isinstance(fc, dict) or fc.get("type") != "FeatureCollection" or not isinstance(fc.get("features"), list):
        raise GraphImportError("Invalid GeoJSON FeatureCollection.")

    markers = []
    raw_edges = []
    for f in fc["features"]:
        geometry = (f or {}).get("geometry") or {}
        props = (f or {}).get("properties") or {}
        if geometry.get("type") == "Point":
            node_id = f.get("id")
            if node_id is None:
                node_id = props.get("id")
            node_id = "" if node_id is None else str(node_id)
            coords = geometry.get("coordinates") or []
            if len(coords) < 2:
                continue
            try:
                lng, lat = float(coords[0]), float(coords[1])
            except (TypeError, ValueError):
                continue
            if node_id and math.isfinite(lng) and math.isfinite(lat):
                markers.append(MarkerNode(node_id, lng, lat))
        elif geometry.get("type") == "LineString":
            frm, to = props.get("from"), props.get("to")
            if frm and to:
                raw_edges.append((str(frm), str(to)))

    if len({m.id for m in markers}) != len(markers):
        raise GraphImportError("Duplicate node ids in import.")

    edges = []
    seen = set()
    for frm, to in raw_edges:
        key = edge_key(frm, to)
        if key in seen:
            continue
        seen.add(key)
        edges.append(EdgeIndexEntry(key, frm, to, True))
    return markers, edges


# --------------------------------------------------------------------
# NetworkX view
# --------------------------------------------------------------------
def to_networkx(markers, edges) -> nx.DiGraph:
    """Directed graph; bidirectional edges appear in both directions."""
    G = nx.DiGraph()
    for m in markers:
        G.add_node(m.id, lat=m.lat, lon=m.lng, blue_light=m.is_blue_light)
    for e in edges:
        if e.frm not in G.nodes or e.to not in G.nodes:
            log.warning("Edge %s references unknown node(s)", e.key)
            continue
        a, b = G.nodes[e.frm], G.nodes[e.to]
        w = haversine_m(a["lat"], a["lon"], b["lat"], b["lon"])
        G.add_edge(e.frm, e.to, key=e.key, weight=w, bidir=e.bi_directional)
        if e.bi_directional:
            G.add_edge(e.to, e.frm, key=e.key, weight=w, bidir=True)
    return G

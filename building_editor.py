"""
Building polygon editing.

Polygons arrive from the drawing tool as GeoJSON Features. Each building is
stored in the backend with its polygon serialized as a JSON string and a
reference point (the mean of the ring's vertices).
"""

import json
import logging
import time

from graph_editor import EditorError

log = logging.getLogger(__name__)


def feature_id(f) -> str:
    """Drawing tools may put the id at the top level or in the properties."""
    f = f or {}
    fid = f.get("id")
    if fid is None:
        fid = (f.get("properties") or {}).get("id")
    return "" if fid is None else str(fid)


def normalize_features(polys):
    """Give every polygon a string id (top level and properties) and drop duplicate ids."""
    seen = set()
    out = []
    for f in polys or []:
        fid = feature_id(f)
        if fid and fid != "undefined":
            f = dict(f, id=fid, properties=dict(f.get("properties") or {}, id=fid))
        if fid:
            if fid in seen:
                continue
            seen.add(fid)
        out.append(f)
    return out


def ring_centroid(ring):
    """Vertex mean of a polygon ring, returned as (lat, lng)."""
    if not ring:
        raise ValueError("empty ring")
    lng = sum(pt[0] for pt in ring) / len(ring)
    lat = sum(pt[1] for pt in ring) / len(ring)
    return lat, lng


def _outer_ring(feature):
    coords = ((feature or {}).get("geometry") or {}).get("coordinates") or []
    return coords[0] if coords else []


class BuildingEditor:
    def __init__(self, api, clock=time.time):
        self.api = api
        self.clock = clock
        self.buildings = []
        self.polys = []
        self.current = {}

    def find(self, building_id):
        return next((b for b in self.buildings if str(b.get("id")) == str(building_id)), None)

    def load(self):
        resp = self.api.get_all_buildings()
        if not resp:
            raise EditorError("Buildings failed to load")
        self.buildings = resp.get("buildings") or []
        polys = []
        for b in self.buildings:
            try:
                polys.append(json.loads(b.get("polyGon")))
            except (TypeError, ValueError):
                log.warning("Building %s has no usable polygon", b.get("id"))
        self.polys = normalize_features(polys)

    def on_create(self, feature):
        ring = _outer_ring(feature)
        if not ring:
            return None
        lat, lng = ring_centroid(ring)
        name = f"B-{int(self.clock() * 1000)}"
        building_id = feature_id(feature)
        stored = dict(feature, id=building_id)
        polygon = json.dumps(stored)

        if not self.api.add_building(building_id, name, lat, lng, polygon):
            raise EditorError("Could not add building")

        record = {"id": building_id, "name": name, "lat": lat, "lng": lng, "polyGon": polygon}
        self.polys.append(stored)
        self.buildings.append(record)
        self.current = dict(record)
        return record

    def on_update(self, feature):
        ring = _outer_ring(feature)
        if not ring:
            return None
        lat, lng = ring_centroid(ring)
        building_id = feature_id(feature)
        updated = dict(feature, id=building_id)
        polygon = json.dumps(updated)

        if not self.api.update_building_polygon(building_id, polygon, lat, lng):
            raise EditorError("Failed to update polygon")
        self.polys = [updated if feature_id(p) == building_id else p for p in self.polys]
        b = self.find(building_id)
        if b is not None:
            b.update(lat=lat, lng=lng, polyGon=polygon)
        return updated

    def on_delete(self, feature):
        building_id = feature_id(feature)
        if not self.api.delete_building(building_id):
            raise EditorError("Failed to delete building")
        self.polys = [p for p in self.polys if feature_id(p) != building_id]
        self.buildings = [b for b in self.buildings if str(b.get("id")) != building_id]
        if str(self.current.get("id", "")) == building_id:
            self.current = {}

    def remove_polygon(self, building_id):
        building_id = str(building_id)
        if not self.api.remove_building_polygon(building_id):
            raise EditorError("Failed to remove polygon")
        self.polys = [p for p in self.polys if feature_id(p) != building_id]
        b = self.find(building_id)
        if b is not None:
            b["polyGon"] = None

    def select(self, building_id):
        b = self.find(building_id)
        if b is None:
            # drawn but not stored yet
            log.info("building %s not found", building_id)
            return None
        self.current = dict(b)
        return self.current

    def clear_selection(self):
        self.current = {}

    def rename(self, name):
        if not self.current.get("id"):
            raise EditorError("Select a building first.")
        building_id = str(self.current["id"])
        if not self.api.edit_building_name(building_id, name):
            raise EditorError("Name could not be updated!")
        b = self.find(building_id)
        if b is not None:
            b["name"] = name
        self.current["name"] = name

    def feature_collection(self):
        return {"type": "FeatureCollection", "features": list(self.polys)}

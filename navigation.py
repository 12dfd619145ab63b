"""
End-user navigation state: destination selection, route preview, live
tracking, and the blue light emergency route.

The browser reports GPS fixes and compass headings; these classes decide what
the map should show and where the camera should point.
"""

import json
import logging
import math
from dataclasses import dataclass, asdict
from typing import Optional

from config import SETTINGS
from graph_model import parse_map_features
from icmaps_api import BackendError
from route_builder import (
    bearing_to,
    bounds_for,
    build_route,
    longest_segment,
    make_circle_geojson,
    path_keys_from_response,
    route_segments,
)

log = logging.getLogger(__name__)

STAGE_IDLE = "idle"
STAGE_BUILDING = "building"
STAGE_ROUTE = "route"
STAGE_TRACKING = "tracking"

STAGE_DETAILS = {
    STAGE_IDLE: {
        "label": "Campus overview",
        "headline": "Explore the full map",
        "description": "Pan freely or pick a building to preview routes.",
    },
    STAGE_BUILDING: {
        "label": "Building focus",
        "headline": "Dialed into your destination",
        "description": "Review building info or preview a route when ready.",
    },
    STAGE_ROUTE: {
        "label": "Route overview",
        "headline": "Preview the full path",
        "description": "See the complete route before committing to tracking.",
    },
    STAGE_TRACKING: {
        "label": "Live navigation",
        "headline": "Tracking in real time",
        "description": "Follow turn-by-turn guidance until you arrive.",
    },
}

# Destination pin sits just in front of the building's reference point.
DEST_LAT_OFFSET = -0.0002
DEST_LNG_OFFSET = 0.00005
MIN_ACCURACY_M = 5


class NavigationError(Exception):
    """A user-facing navigation failure."""


@dataclass
class UserPos:
    lng: float
    lat: float
    accuracy: Optional[float] = None
    heading: Optional[float] = None


@dataclass
class Camera:
    lng: float
    lat: float
    bearing: float = 0.0
    zoom: float = 15.5
    pitch: float = 0.0

    def to_dict(self):
        return asdict(self)


def default_camera() -> Camera:
    v = SETTINGS.DEFAULT_VIEW
    return Camera(v["lng"], v["lat"], 0.0, v["zoom"], 0.0)


def _usable_heading(h) -> bool:
    return isinstance(h, (int, float)) and not math.isnan(h)


class _TrackingSession:
    tracking_zoom = 20

    def __init__(self, api):
        self.api = api
        self.markers = []
        self.edges = []
        self.user_pos = None
        self.device_heading = None
        self.path = set()
        self.route_coords = []
        self.tracking = False
        self.navigating = False
        self.camera = default_camera()

    def set_user_position(self, lng, lat, accuracy=None, heading=None):
        self.user_pos = UserPos(float(lng), float(lat), accuracy, heading)
        return self.user_pos

    def set_device_heading(self, heading):
        self.device_heading = heading if _usable_heading(heading) else None

    def accuracy_ring(self):
        if self.user_pos is None or not self.user_pos.accuracy:
            return None
        radius = max(float(self.user_pos.accuracy), MIN_ACCURACY_M)
        return make_circle_geojson(self.user_pos.lng, self.user_pos.lat, radius, 64)

    def aim(self, lng, lat, bearing, zoom=None, pitch=60):
        self.camera = Camera(lng, lat, bearing or 0.0, zoom or self.tracking_zoom, pitch)
        return self.camera

    def _follow_bearing(self, lng, lat, heading):
        if _usable_heading(heading):
            return heading
        if self.device_heading is not None:
            return self.device_heading
        if len(self.route_coords) >= 2:
            nx_, ny_ = self.route_coords[1]
            return bearing_to(lng, lat, nx_, ny_)
        return self.camera.bearing

    def update_position(self, lng, lat, heading=None, accuracy=None):
        """Apply a GPS fix while tracking and return the new camera."""
        if not self.tracking:
            raise NavigationError("Tracking is not active.")
        accuracy = accuracy if accuracy is not None else (self.user_pos.accuracy if self.user_pos else None)
        self.set_user_position(lng, lat, accuracy, heading)
        return self.aim(float(lng), float(lat), self._follow_bearing(float(lng), float(lat), heading))


class NavigationSession(_TrackingSession):
    def __init__(self, api):
        super().__init__(api)
        self.buildings = []
        self.nav_modes = []
        self.cur_nav_mode = 1
        self.selected_dest = ""
        self.dest_pos = None
        self.building_poly = None
        self.building_nodes = set()
        self.path_node_ids = set()
        self.stage = STAGE_IDLE
        self._feature_cache = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load(self):
        resp = self.api.get_all_buildings()
        if not resp or not resp.get("buildings"):
            raise NavigationError("Buildings did not load!")
        self.buildings = resp["buildings"]

        modes = (self.api.get_all_nav_modes() or {}).get("NavModes") or []
        self.nav_modes = modes
        if modes and str(self.cur_nav_mode) not in {str(m.get("id")) for m in modes}:
            self.cur_nav_mode = modes[0]["id"]

    def set_nav_mode(self, nav_mode_id):
        if str(nav_mode_id) != str(self.cur_nav_mode):
            self.cur_nav_mode = nav_mode_id
            self._reset_route()

    def load_graph(self):
        """Map geometry for the active nav mode, cached per mode."""
        cache_key = str(self.cur_nav_mode if self.cur_nav_mode is not None else "default")
        cached = self._feature_cache.get(cache_key)
        if cached is None:
            try:
                if self.cur_nav_mode is not None:
                    resp = self.api.get_all_map_features_nav_mode(str(self.cur_nav_mode))
                else:
                    resp = self.api.get_all_map_features()
            except BackendError as e:
                log.error("Failed to load nav mode features: %s", e)
                self.markers, self.edges = [], []
                return self.markers, self.edges
            data = (resp or {}).get("data", resp) or {}
            cached = parse_map_features(data)
            self._feature_cache[cache_key] = cached
        self.markers, self.edges = cached
        return self.markers, self.edges

    @property
    def selected_building(self):
        return next((b for b in self.buildings if str(b.get("id")) == str(self.selected_dest)), None)

    def stage_details(self):
        return STAGE_DETAILS.get(self.stage, STAGE_DETAILS[STAGE_IDLE])

    # ------------------------------------------------------------------
    # Destination
    # ------------------------------------------------------------------
    def _reset_route(self):
        self.path = set()
        self.path_node_ids = set()
        self.route_coords = []
        self.navigating = False

    def select_destination(self, building_id):
        if not building_id:
            self.clear_destination()
            return None
        if self.tracking:
            self.stop_tracking()
        else:
            self._reset_route()
        self.selected_dest = str(building_id)
        return self.show_building(self.selected_dest)

    def show_building(self, building_id):
        resp = self.api.get_building_pos(building_id) or {}

        poly = (resp.get("building") or {}).get("polyGon")
        try:
            self.building_poly = json.loads(poly) if isinstance(poly, str) else None
        except ValueError:
            log.warning("Building %s has an unreadable polygon", building_id)
            self.building_poly = None
        self.building_nodes = {str((n or {}).get("id")) for n in resp.get("building_nodes") or []}

        b = resp.get("building") or {}
        try:
            lat, lng = float(b.get("lat")), float(b.get("lng"))
        except (TypeError, ValueError):
            lat = lng = math.nan
        if not (math.isfinite(lat) and math.isfinite(lng)):
            log.error("Invalid building coordinates: %r %r", b.get("lat"), b.get("lng"))
            self.dest_pos = None
            raise NavigationError("Building location data is invalid.")

        self.dest_pos = (lng + DEST_LNG_OFFSET, lat + DEST_LAT_OFFSET)
        self.tracking = False
        self._reset_route()
        self.stage = STAGE_BUILDING
        self.camera = Camera(self.dest_pos[0], self.dest_pos[1], 0.0, 18.5, 42)
        return self.dest_pos

    def clear_destination(self):
        if self.tracking:
            self.stop_tracking()
        self.selected_dest = ""
        self.dest_pos = None
        self.building_poly = None
        self.building_nodes = set()
        self._reset_route()
        self.stage = STAGE_IDLE
        self.camera = default_camera()

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------
    def _fetch_route(self):
        resp = self.api.get_route_to(
            self.selected_dest, self.user_pos.lat, self.user_pos.lng, str(self.cur_nav_mode)
        )
        keys = path_keys_from_response(resp)
        if keys:
            self.load_graph()
        return keys

    def _apply_route(self, keys):
        self.path = set(keys)
        route = build_route(keys, self.markers, self.edges)
        if route is not None:
            self.path_node_ids = set(route.node_ids)
            self.route_coords = route.coords
        return route

    def show_route(self):
        if not self.selected_dest:
            raise NavigationError("Please select a destination before starting route.")
        if self.user_pos is None:
            raise NavigationError("Tap Locate Me before looking for a route.")

        keys = self._fetch_route()
        if not keys:
            raise NavigationError("No route found for that selection.")

        self.navigating = True
        self.tracking = False
        route = self._apply_route(keys)
        self.stage = STAGE_ROUTE
        if route is None:
            raise NavigationError("Route geometry is still loading. Please try again.")
        return route

    def start_tracking(self):
        if not self.selected_dest:
            raise NavigationError("Please select a destination first.")
        if self.user_pos is None:
            raise NavigationError("Tap Locate Me first so I know where you are.")

        keys = self._fetch_route()
        if not keys:
            raise NavigationError("No route found.")
        route = self._apply_route(keys)
        if route is None or len(route.coords) < 2:
            raise NavigationError("Route is too short to navigate.")

        self.navigating = True
        up = self.user_pos
        lng2, lat2 = route.coords[1]
        forward = up.heading if _usable_heading(up.heading) else bearing_to(up.lng, up.lat, lng2, lat2)
        self.aim(up.lng, up.lat, forward, zoom=20)
        self.tracking = True
        self.stage = STAGE_TRACKING
        return self.camera

    def stop_tracking(self):
        self.camera = default_camera()
        self._reset_route()
        self.tracking = False
        self.device_heading = None
        self.stage = STAGE_IDLE

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    def fit_bounds(self, extra_coords=()):
        coords = []
        if self.user_pos is not None:
            coords.append([self.user_pos.lng, self.user_pos.lat])
        if self.dest_pos is not None:
            coords.append(list(self.dest_pos))
        coords.extend(list(c) for c in extra_coords)
        return bounds_for(coords)

    def building_nodes_geojson(self):
        if not self.markers or not self.building_nodes:
            return None
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {"id": m.id, "onPath": m.id in self.path_node_ids},
                    "geometry": {"type": "Point", "coordinates": [m.lng, m.lat]},
                }
                for m in self.markers
                if m.id in self.building_nodes
            ],
        }

    def route_geojson(self):
        if len(self.route_coords) < 2:
            return None
        return {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {},
                    "geometry": {"type": "LineString", "coordinates": self.route_coords},
                }
            ],
        }


class BlueLightSession(_TrackingSession):
    """Route from the user's position to the nearest blue light phone."""

    tracking_zoom = 18

    def __init__(self, api):
        super().__init__(api)
        self.dest = ""

    def load_graph(self):
        self.markers, self.edges = parse_map_features(self.api.get_all_map_features())
        return self.markers, self.edges

    def load_path(self, lat, lng):
        try:
            resp = self.api.get_nearest_blue_light_path(lat, lng)
        except BackendError as e:
            log.error("blue light path failed: %s", e)
            self.path, self.dest = set(), ""
            raise NavigationError("Failed to load blue light route.") from e
        resp = resp or {}
        self.path = set(path_keys_from_response(resp))
        dest = resp.get("dest")
        self.dest = "" if dest is None else str(dest)
        if self.path and not self.markers:
            self.load_graph()
        self.route_coords = longest_segment(self.segments()) or []
        return self.path

    def segments(self):
        if not self.path:
            return []
        return route_segments(sorted(self.path), self.markers, self.edges)

    def dest_pos(self):
        m = next((m for m in self.markers if m.id == self.dest), None)
        if m is None or not (math.isfinite(m.lng) and math.isfinite(m.lat)):
            return None
        return (m.lng, m.lat)

    def route_geojson(self):
        segments = self.segments()
        if not segments:
            return None
        return {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "properties": {}, "geometry": {"type": "LineString", "coordinates": seg}}
                for seg in segments
            ],
        }

    def start_tracking(self):
        if self.user_pos is None:
            raise NavigationError("Location is required to start the emergency route.")
        coords = self.route_coords
        if not coords or len(coords) < 2:
            raise NavigationError("Route is still loading. Please wait a moment.")
        up = self.user_pos
        forward = up.heading if _usable_heading(up.heading) else bearing_to(up.lng, up.lat, coords[1][0], coords[1][1])
        self.aim(up.lng, up.lat, forward)
        self.tracking = True
        self.navigating = True
        return self.camera

    def _follow_bearing(self, lng, lat, heading):
        if _usable_heading(heading):
            return heading
        if len(self.route_coords) >= 2:
            return bearing_to(lng, lat, self.route_coords[1][0], self.route_coords[1][1])
        return 0.0

    def stop_tracking(self):
        self.camera = default_camera()
        self.route_coords = []
        self.path = set()
        self.dest = ""
        self.navigating = False
        self.tracking = False
        self.device_heading = None

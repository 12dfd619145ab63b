"""
Route editor state.

RouteEditor keeps the admin's working copy of the campus graph together with
everything derived from it: the current selection, the nodes/edges tagged for
the active navigation mode, and the node group of the building being edited.
Every mutation goes to the backend first and is applied locally only when the
backend accepted it, so the derived sets never reference features that no
longer exist.
"""

import logging
import time

from graph_model import (
    MarkerNode,
    EdgeIndexEntry,
    edge_key,
    edges_geojson,
    nodes_geojson,
    export_geojson,
    import_geojson,
    parse_map_features,
)
from icmaps_api import BackendError

log = logging.getLogger(__name__)

MODES = ("select", "edit", "delete", "navMode", "buildingGroup", "blueLight")


class EditorError(Exception):
    """A user-facing editor failure (shown to the admin as a message)."""


class RouteEditor:
    def __init__(self, api, clock=time.time):
        self.api = api
        self.clock = clock

        self.markers = []
        self.edge_index = []
        self.bi_directional_edges = True
        self.selected_id = None
        self.mode = "select"
        self.show_nodes = True

        self.nav_modes = []
        self.cur_nav_mode = None
        self.nav_mode_nodes = set()
        self.nav_mode_edges = set()
        self.show_only_nav_mode = False

        self.buildings = []
        self.current_building = None
        self.building_nodes = set()
        self.building_order = []

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_marker(self, node_id):
        return next((m for m in self.markers if m.id == node_id), None)

    def get_edge(self, key):
        return next((e for e in self.edge_index if e.key == key), None)

    def _touches_tagged_edge(self, node_id, tagged=None):
        tagged = self.nav_mode_edges if tagged is None else tagged
        return any(
            e.key in tagged and (e.frm == node_id or e.to == node_id)
            for e in self.edge_index
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def load(self):
        self.load_features()
        self.load_buildings()
        self.load_nav_modes()

    def load_features(self):
        self.markers, self.edge_index = parse_map_features(self.api.get_all_map_features())

    def load_buildings(self):
        resp = self.api.get_all_buildings()
        if not resp:
            raise EditorError("Buildings did not load!")
        self.buildings = resp.get("buildings") or []

    def load_nav_modes(self):
        resp = self.api.get_all_nav_modes() or {}
        self.nav_modes = resp.get("NavModes") or []
        if self.nav_modes:
            self.select_nav_mode(self.nav_modes[0]["id"])

    def select_nav_mode(self, nav_mode_id):
        self.cur_nav_mode = nav_mode_id
        resp = self.api.get_all_map_features_nav_mode_ids(str(nav_mode_id)) or {}
        self.nav_mode_edges = {str(x) for x in resp.get("edges") or []}
        self.nav_mode_nodes = {str(x) for x in resp.get("nodes") or []}

    # ------------------------------------------------------------------
    # Graph ops
    # ------------------------------------------------------------------
    def add_node(self, lng, lat):
        node_id = f"n-{int(self.clock() * 1000)}"
        if not self.api.add_node(node_id, lng, lat):
            raise EditorError("Node could not be added.")
        marker = MarkerNode(node_id, float(lng), float(lat))
        self.markers.append(marker)
        return marker

    def move_node(self, node_id, lng, lat):
        if not self.api.edit_node(node_id, lng, lat):
            raise EditorError("Node could not be edited.")
        m = self.find_marker(node_id)
        if m is not None:
            m.lng, m.lat = float(lng), float(lat)

    def add_edge_if_missing(self, a, b):
        if a == b:
            return None
        if self.find_marker(a) is None or self.find_marker(b) is None:
            return None
        key = edge_key(a, b)
        if self.get_edge(key) is not None:
            return None

        if not self.api.add_edge(key, b, a, self.bi_directional_edges):
            raise EditorError("Edge could not be added.")
        entry = EdgeIndexEntry(key, a, b, self.bi_directional_edges)
        self.edge_index.append(entry)
        return entry

    def delete_node(self, node_id):
        if not self.api.delete_feature(node_id, "node"):
            raise EditorError("Feature could not be deleted.")

        incident = {e.key for e in self.edge_index if e.frm == node_id or e.to == node_id}
        self.markers = [m for m in self.markers if m.id != node_id]
        self.edge_index = [e for e in self.edge_index if e.key not in incident]
        self.nav_mode_nodes.discard(node_id)
        self.nav_mode_edges -= incident
        self.building_nodes.discard(node_id)
        self.building_order = [n for n in self.building_order if n != node_id]
        if self.selected_id == node_id:
            self.selected_id = None

    def delete_edge_by_key(self, key):
        if not self.api.delete_feature(key, "edge"):
            raise EditorError("Feature could not be deleted.")
        self.edge_index = [e for e in self.edge_index if e.key != key]
        self.nav_mode_edges.discard(key)

    def toggle_blue_light(self, node_id):
        m = self.find_marker(node_id)
        if m is None:
            return
        value = not m.is_blue_light
        if not self.api.set_blue_light(node_id, value):
            raise EditorError("Could not set marker as Blue Light.")
        m.is_blue_light = value

    # ------------------------------------------------------------------
    # Navigation mode tagging
    # ------------------------------------------------------------------
    def _push_status(self, feature_id, value, feature_type):
        if not self.api.set_nav_mode_status(feature_id, value, feature_type, str(self.cur_nav_mode)):
            log.warning("nav mode %s: %s %s -> %s not stored", self.cur_nav_mode, feature_type, feature_id, value)

    def set_nav_mode_node(self, node_id, status):
        if not self.cur_nav_mode:
            raise EditorError("Select a navigation mode first.")
        if not status and self._touches_tagged_edge(node_id):
            raise EditorError("Can't deselect a node adjacent to a selected ADA edge.")

        if status:
            self.nav_mode_nodes.add(node_id)
        else:
            self.nav_mode_nodes.discard(node_id)
        self._push_status(node_id, status, "Node")

    def toggle_nav_mode_edge(self, key):
        if not self.cur_nav_mode:
            raise EditorError("Select a navigation mode first.")
        edge = self.get_edge(key)
        if edge is None:
            return

        if key in self.nav_mode_edges:
            self.nav_mode_edges.discard(key)
            self._push_status(key, False, "Edge")
            # endpoints stay tagged while another tagged edge still reaches them
            for node_id in (edge.frm, edge.to):
                if not self._touches_tagged_edge(node_id):
                    self.nav_mode_nodes.discard(node_id)
                    self._push_status(node_id, False, "Node")
        else:
            self.nav_mode_edges.add(key)
            self._push_status(key, True, "Edge")
            for node_id in (edge.to, edge.frm):
                self.nav_mode_nodes.add(node_id)
                self._push_status(node_id, True, "Node")

    # ------------------------------------------------------------------
    # Building groups
    # ------------------------------------------------------------------
    def select_building(self, building_id):
        self.current_building = building_id
        resp = self.api.get_all_building_nodes(str(building_id)) or {}
        ids = []
        for n in resp.get("nodes") or []:
            node_id = n if isinstance(n, str) else (n or {}).get("id")
            if node_id:
                ids.append(str(node_id))
        self.building_nodes = set(ids)
        self.building_order = ids

    def toggle_building_node(self, node_id):
        if not self.current_building:
            raise EditorError("Select a building first.")
        building = str(self.current_building)

        if node_id in self.building_nodes:
            if not self.api.detach_node_from_building(building, node_id):
                raise EditorError("Failed to detach node.")
            self.building_nodes.discard(node_id)
            self.building_order = [n for n in self.building_order if n != node_id]
        else:
            if not self.api.attach_node_to_building(building, node_id):
                raise EditorError("Failed to attach node.")
            self.building_nodes.add(node_id)
            if node_id not in self.building_order:
                self.building_order.append(node_id)

    def clear_building_nodes(self):
        if not self.current_building or not self.building_nodes:
            return
        building = str(self.current_building)
        ids = sorted(self.building_nodes)

        succeeded = []
        for node_id in ids:
            try:
                ok = self.api.detach_node_from_building(building, node_id)
            except BackendError as e:
                log.error("detach %s from %s failed: %s", node_id, building, e)
                ok = False
            if ok:
                succeeded.append(node_id)

        self.building_nodes -= set(succeeded)
        self.building_order = [n for n in self.building_order if n not in succeeded]
        if len(succeeded) != len(ids):
            raise EditorError("Some nodes failed to detach.")

    def reorder_building_node(self, from_id, over_id):
        """Move from_id to over_id's slot among the building's member nodes."""
        if not from_id or from_id == over_id:
            return
        ids = [n for n in self.building_order if n in self.building_nodes]
        if from_id not in ids or over_id not in ids:
            return
        to_idx = ids.index(over_id)
        ids.remove(from_id)
        ids.insert(to_idx, from_id)
        rest = [n for n in self.building_order if n not in self.building_nodes]
        self.building_order = ids + rest

    # ------------------------------------------------------------------
    # Map events
    # ------------------------------------------------------------------
    def set_mode(self, mode):
        if mode not in MODES:
            raise EditorError(f"Unknown editor mode: {mode}")
        self.mode = mode
        if mode != "navMode":
            self.show_only_nav_mode = False

    def set_show_only_nav_mode(self, flag):
        self.show_only_nav_mode = bool(flag) and self.mode == "navMode"

    def set_bi_directional(self, flag):
        self.bi_directional_edges = bool(flag)

    def toggle_nodes(self):
        if self.show_nodes and self.selected_id:
            self.selected_id = None
        self.show_nodes = not self.show_nodes

    def handle_map_click(self, lng, lat, alt_key=False):
        if alt_key:
            return self.add_node(lng, lat)
        if self.mode == "select" and self.selected_id is not None:
            self.selected_id = None
        return None

    def handle_marker_click(self, node_id):
        if self.mode == "delete":
            return self.delete_node(node_id)
        if self.mode == "buildingGroup":
            return self.toggle_building_node(node_id)
        if self.mode == "navMode":
            return self.set_nav_mode_node(node_id, node_id not in self.nav_mode_nodes)
        if self.mode == "blueLight":
            return self.toggle_blue_light(node_id)
        if self.mode == "select":
            cur = self.selected_id
            if cur is None:
                self.selected_id = node_id
            elif cur == node_id:
                self.selected_id = None
            else:
                self.selected_id = None
                self.add_edge_if_missing(cur, node_id)
        return None

    def handle_marker_drag_end(self, node_id, lng, lat):
        if self.mode != "edit":
            raise EditorError("Switch to edit mode to move nodes.")
        self.move_node(node_id, lng, lat)

    def handle_edge_click(self, key):
        if not key:
            return
        if self.mode == "navMode":
            self.toggle_nav_mode_edge(key)
        elif self.mode == "delete":
            self.delete_edge_by_key(key)

    # ------------------------------------------------------------------
    # Import / export / view
    # ------------------------------------------------------------------
    def import_geojson(self, fc):
        self.markers, self.edge_index = import_geojson(fc)
        self.selected_id = None

    def export_geojson(self):
        return export_geojson(self.markers, self.edge_index)

    def view_model(self):
        nav_active = self.mode == "navMode"
        return {
            "mode": self.mode,
            "selectedId": self.selected_id,
            "showNodes": self.show_nodes,
            "biDirectional": self.bi_directional_edges,
            "showOnlyNavMode": self.show_only_nav_mode,
            "navModes": self.nav_modes,
            "curNavMode": self.cur_nav_mode,
            "navModeNodes": sorted(self.nav_mode_nodes),
            "navModeEdges": sorted(self.nav_mode_edges),
            "buildings": self.buildings,
            "currentBuilding": self.current_building,
            "buildingOrder": [n for n in self.building_order if n in self.building_nodes],
            "nodes": nodes_geojson(self.markers) if self.show_nodes else nodes_geojson([]),
            "edges": edges_geojson(
                self.markers,
                self.edge_index,
                nav_edges=self.nav_mode_edges,
                nav_mode_active=nav_active,
                show_only_nav_mode=self.show_only_nav_mode,
            ),
        }

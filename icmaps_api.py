"""
Thin client for the IC Maps backend service.

The backend owns persistence and path computation; everything here is a
request/response wrapper. Reads return the decoded JSON body (None on a non-2xx
answer), writes return True/False depending on the status code. Transport
failures surface as BackendError.
"""

import logging

import requests

log = logging.getLogger(__name__)


class BackendError(Exception):
    """The backend could not be reached or answered with an unreadable body."""


class BackendClient:
    def __init__(self, base_url: str, session=None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _url(self, path: str, query: str = "") -> str:
        url = f"{self.base_url}/{path.lstrip('/')}"
        if query:
            url += query if query.startswith("?") else f"?{query}"
        return url

    def request(self, method: str, path: str, params=None, body=None, query: str = ""):
        kwargs = {"timeout": self.timeout}
        if params:
            kwargs["params"] = params
        if body is not None:
            kwargs["json"] = body
        try:
            return self.session.request(method, self._url(path, query), **kwargs)
        except requests.RequestException as e:
            log.error("backend %s %s failed: %s", method, path, e)
            raise BackendError(f"Backend unavailable: {e}") from e

    def forward(self, method: str, path: str, query: str = "", body=None):
        """Pass a request straight through; returns (body text, status code)."""
        resp = self.request(method, path, body=body, query=query)
        return resp.text, resp.status_code

    def _read(self, path: str, params=None):
        resp = self.request("GET", path, params=params)
        if not 200 <= resp.status_code < 300:
            log.warning("backend GET %s answered %s", path, resp.status_code)
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(f"Backend sent invalid JSON for {path}") from e

    def _write(self, method: str, path: str, body) -> bool:
        resp = self.request(method, path, body=body)
        if not 200 <= resp.status_code < 300:
            log.warning("backend %s %s answered %s", method, path, resp.status_code)
            return False
        return True

    # ------------------------------------------------------------------
    # Map graph
    # ------------------------------------------------------------------
    def get_all_map_features(self):
        return self._read("/map/all")

    def add_node(self, node_id: str, lng: float, lat: float) -> bool:
        return self._write("POST", "/map/", {"id": node_id, "lng": lng, "lat": lat, "type": "node"})

    def edit_node(self, node_id: str, lng: float, lat: float) -> bool:
        return self._write("PUT", "/map/", {"id": node_id, "lng": lng, "lat": lat})

    def set_blue_light(self, node_id: str, is_blue_light: bool) -> bool:
        return self._write("POST", "/map/bluelight", {"nodeId": node_id, "isBlueLight": is_blue_light})

    def add_edge(self, key: str, to: str, frm: str, bi_directional: bool) -> bool:
        return self._write(
            "POST",
            "/map/",
            {"key": key, "to": to, "from": frm, "type": "edge", "biDirectional": bi_directional},
        )

    def delete_feature(self, feature_key: str, feature_type: str) -> bool:
        return self._write("DELETE", "/map/", {"featureKey": feature_key, "featureType": feature_type})

    # ------------------------------------------------------------------
    # Buildings
    # ------------------------------------------------------------------
    def add_building(self, building_id: str, name: str, lat: float, lng: float, polygon) -> bool:
        return self._write(
            "POST",
            "/building/",
            {"id": building_id, "name": name, "lat": lat, "lng": lng, "polyGon": polygon},
        )

    def edit_building_name(self, building_id: str, name: str) -> bool:
        return self._write("PUT", "/building/", {"id": building_id, "name": name})

    def delete_building(self, building_id: str) -> bool:
        return self._write("DELETE", "/building/", {"id": building_id})

    def get_all_buildings(self):
        return self._read("/building/")

    def get_all_building_nodes(self, building_id: str):
        return self._read("/building/nodesget", params={"id": building_id})

    def attach_node_to_building(self, building_id: str, node_id: str) -> bool:
        return self._write("POST", "/building/nodeadd", {"buildingId": building_id, "nodeId": node_id})

    def detach_node_from_building(self, building_id: str, node_id: str) -> bool:
        return self._write("POST", "/building/noderemove", {"buildingId": building_id, "nodeId": node_id})

    def update_building_polygon(self, building_id: str, polygon_json: str, lat: float, lng: float) -> bool:
        return self._write(
            "PATCH",
            "/building/setpolygon",
            {"buildingId": building_id, "polygonJson": polygon_json, "lat": lat, "lng": lng},
        )

    def remove_building_polygon(self, building_id: str) -> bool:
        return self._write("DELETE", "/building/setpolygon", {"buildingId": building_id})

    def get_building_pos(self, building_id: str):
        return self._read("/building/buildingpos", params={"id": building_id})

    # ------------------------------------------------------------------
    # Navigation modes
    # ------------------------------------------------------------------
    def add_nav_mode(self, name: str, from_through: bool) -> bool:
        return self._write("POST", "/navmode/", {"name": name, "fromThrough": from_through})

    def edit_nav_mode(self, nav_mode_id: str, name: str, from_through=None) -> bool:
        body = {"id": nav_mode_id, "name": name}
        if from_through is not None:
            body["fromThrough"] = from_through
        return self._write("PUT", "/navmode/", body)

    def delete_nav_mode(self, nav_mode_id: str) -> bool:
        return self._write("DELETE", "/navmode/", {"id": nav_mode_id})

    def get_all_nav_modes(self):
        return self._read("/navmode/")

    def set_nav_mode_status(self, feature_id: str, value, feature_type: str, nav_mode_id: str) -> bool:
        return self._write(
            "PATCH",
            "/navmode/setstatus",
            {"id": feature_id, "value": value, "featureType": feature_type, "navModeId": nav_mode_id},
        )

    def get_all_map_features_nav_mode_ids(self, nav_mode_id: str):
        return self._read("/navmode/allids", params={"navModeId": nav_mode_id})

    def get_all_map_features_nav_mode(self, nav_mode_id: str):
        return self._read("/navmode/all", params={"navModeId": nav_mode_id})

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------
    def get_route_to(self, building_id: str, lat: float, lng: float, nav_mode: str):
        return self._read(
            "/map/navigateTo",
            params={"id": building_id, "lat": str(lat), "lng": str(lng), "navMode": str(nav_mode)},
        )

    def get_nearest_blue_light_path(self, lat: float, lng: float):
        return self._read("/map/bluelight", params={"lat": str(lat), "lng": str(lng)})

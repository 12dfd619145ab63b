import json
from urllib.parse import parse_qsl, urlsplit

import pytest
import requests

from icmaps_api import BackendClient

BASE = "http://backend.test"

LIBRARY_POLY = {
    "type": "Feature",
    "id": "B1",
    "properties": {"id": "B1"},
    "geometry": {
        "type": "Polygon",
        "coordinates": [[
            [-76.4936, 42.4226], [-76.4932, 42.4226], [-76.4932, 42.4229],
            [-76.4936, 42.4229], [-76.4936, 42.4226],
        ]],
    },
}

NODES = [
    {"id": "a", "lng": -76.4950, "lat": 42.4220},
    {"id": "b", "lng": -76.4945, "lat": 42.4222},
    {"id": "c", "lng": -76.4940, "lat": 42.4224},
    {"id": "d", "lng": -76.4935, "lat": 42.4226},
    {"id": "e", "lng": -76.4945, "lat": 42.4215, "isBlueLight": True},
]

EDGES = [
    {"key": "a__b", "from": "a", "to": "b", "biDirectional": True},
    {"key": "b__c", "from": "b", "to": "c", "biDirectional": True},
    {"key": "c__d", "from": "c", "to": "d", "biDirectional": False},
    {"key": "b__e", "from": "b", "to": "e", "biDirectional": True},
]

BUILDINGS = [
    {"id": "B1", "name": "Library", "lat": 42.4227, "lng": -76.4934, "polyGon": json.dumps(LIBRARY_POLY)},
    {"id": "B2", "name": "Gym", "lat": 42.4210, "lng": -76.4960, "polyGon": None},
]

NAV_MODES = [
    {"id": 1, "name": "Default", "fromThrough": False},
    {"id": 2, "name": "ADA", "fromThrough": False},
]


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        if text is None:
            text = "" if body is None else json.dumps(body)
        self.text = text

    def json(self):
        return json.loads(self.text)


class Call:
    def __init__(self, method, path, query, body, kwargs):
        self.method = method
        self.path = path
        self.query = query
        self.body = body
        self.kwargs = kwargs

    def __repr__(self):
        return f"Call({self.method} {self.path} {self.query} {self.body})"


class FakeSession:
    """Stands in for requests.Session: canned answers per (method, path), every call recorded."""

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.fail = False

    def on(self, method, path, body=None, status=200, text=None, handler=None):
        self.routes[(method, path)] = handler or (status, body, text)

    def request(self, method, url, **kwargs):
        parts = urlsplit(url)
        query = dict(parse_qsl(parts.query))
        query.update(kwargs.get("params") or {})
        call = Call(method, parts.path, query, kwargs.get("json"), kwargs)
        self.calls.append(call)
        if self.fail:
            raise requests.ConnectionError("backend down")
        route = self.routes.get((method, parts.path))
        if route is None:
            return FakeResponse(404, {"error": "not found"})
        if callable(route):
            return route(call)
        status, body, text = route
        return FakeResponse(status, body, text)

    def calls_to(self, method, path):
        return [c for c in self.calls if c.method == method and c.path == path]


def install_campus(session):
    features = {"nodes": NODES, "edges": EDGES}
    session.on("GET", "/map/all", features)
    session.on("GET", "/navmode/all", features)
    session.on("GET", "/building/", {"buildings": [dict(b) for b in BUILDINGS]})
    session.on("GET", "/navmode/", {"NavModes": NAV_MODES})
    session.on("GET", "/navmode/allids", {"nodes": ["a", "b"], "edges": ["a__b"]})
    session.on("GET", "/building/nodesget", {"nodes": [{"id": "c"}, {"id": "d"}]})
    session.on("GET", "/building/buildingpos", {"building": BUILDINGS[0], "building_nodes": [{"id": "d"}]})
    session.on("GET", "/map/navigateTo", {"path": ["c__d", "a__b", "b__c"]})
    session.on("GET", "/map/bluelight", {"path": ["b__e", "a__b"], "dest": "e"})
    for method, path in [
        ("POST", "/map/"), ("PUT", "/map/"), ("DELETE", "/map/"),
        ("POST", "/map/bluelight"),
        ("POST", "/building/"), ("PUT", "/building/"), ("DELETE", "/building/"),
        ("POST", "/building/nodeadd"), ("POST", "/building/noderemove"),
        ("PATCH", "/building/setpolygon"), ("DELETE", "/building/setpolygon"),
        ("POST", "/navmode/"), ("PUT", "/navmode/"), ("DELETE", "/navmode/"),
        ("PATCH", "/navmode/setstatus"),
    ]:
        session.on(method, path, {})


@pytest.fixture
def session():
    s = FakeSession()
    install_campus(s)
    return s


@pytest.fixture
def api(session):
    return BackendClient(BASE, session=session, timeout=3)


@pytest.fixture
def clock():
    return lambda: 1700000000.0

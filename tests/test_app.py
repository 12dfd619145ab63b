import json
from collections import OrderedDict

import pytest
from werkzeug.security import generate_password_hash

import app as app_module
from accounts import UserStore, make_token


@pytest.fixture
def flask_app(api, tmp_path, monkeypatch):
    flask_app = app_module.app
    monkeypatch.setitem(flask_app.config, "TESTING", True)
    monkeypatch.setitem(flask_app.config, "USERS_CSV", str(tmp_path / "users.csv"))
    monkeypatch.setitem(flask_app.config, "ADMIN_PWHASH", None)
    monkeypatch.setitem(flask_app.config, "RESEND_API_KEY", None)
    monkeypatch.setitem(flask_app.extensions, "icmaps_api", api)
    monkeypatch.setattr(app_module, "_STATE", OrderedDict())
    return flask_app


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture
def users(flask_app):
    return UserStore(flask_app.config["USERS_CSV"])


def login_as(client, users, email="ada@example.com", **roles):
    user = users.create(email, "longenough")
    users.mark_verified(user["id"])
    if roles:
        users.set_roles(user["id"], **roles)
    with client.session_transaction() as sess:
        sess["user_id"] = user["id"]
    return user


def post_json(client, url, body=None):
    return client.post(url, data=json.dumps(body or {}), content_type="application/json")


# --------------------------------------------------------------------
# Proxy routes
# --------------------------------------------------------------------
def test_proxy_get_passes_body_and_status(client, session):
    session.on("GET", "/navmode/", status=418, body={"NavModes": []})
    resp = client.get("/api/navmode")
    assert resp.status_code == 418
    assert resp.get_json() == {"NavModes": []}


def test_proxy_forwards_query_string(client, session):
    resp = client.get("/api/building?id=B1")
    assert resp.status_code == 200
    assert session.calls[-1].path == "/building/"
    assert session.calls[-1].query == {"id": "B1"}

    client.get("/api/navmode/allids?navModeId=2")
    assert session.calls[-1].path == "/navmode/allids"
    assert session.calls[-1].query == {"navModeId": "2"}


def test_proxy_set_polygon_keeps_patch_method(client, session, users):
    login_as(client, users, is_admin=True)
    body = {"buildingId": "B1", "polygonJson": "{}", "lat": 1, "lng": 2}
    resp = client.patch("/api/building/setpolygon", data=json.dumps(body), content_type="application/json")
    assert resp.status_code == 200
    assert session.calls[-1].method == "PATCH"
    assert session.calls[-1].body == body


def test_proxy_delete_answers_null(client, session, users):
    login_as(client, users, is_route_manager=True)
    session.on("DELETE", "/map/", status=204, text="")
    resp = client.delete("/api/map", data=json.dumps({"featureKey": "a", "featureType": "node"}), content_type="application/json")
    assert resp.status_code == 204
    assert session.calls[-1].body == {"featureKey": "a", "featureType": "node"}


def test_proxy_rejects_bad_json(client, session, users):
    login_as(client, users, is_route_manager=True)
    before = len(session.calls)
    resp = client.post("/api/map", data="not json", content_type="application/json")
    assert resp.status_code == 400
    assert len(session.calls) == before


def test_proxy_writes_need_a_role(client, session, users):
    before = len(session.calls)
    node = json.dumps({"featureKey": "a", "featureType": "node"})
    assert client.delete("/api/map", data=node, content_type="application/json").status_code == 403
    assert post_json(client, "/api/navmode", {"name": "Night"}).status_code == 403
    assert post_json(client, "/api/building/nodeadd", {"buildingId": "B1", "nodeId": "a"}).status_code == 403
    assert len(session.calls) == before

    # route managers edit the graph and nav modes, not buildings
    login_as(client, users, is_route_manager=True)
    assert post_json(client, "/api/navmode", {"name": "Night"}).status_code == 200
    assert post_json(client, "/api/building/nodeadd", {"buildingId": "B1", "nodeId": "a"}).status_code == 403
    assert [c.path for c in session.calls[before:]] == ["/navmode/"]


def test_proxy_reads_stay_open(client, session):
    assert client.get("/api/map/all").status_code == 200
    assert client.get("/api/navmode").status_code == 200
    assert client.get("/api/building").status_code == 200


def test_proxy_admin_may_write_buildings(client, session, users):
    login_as(client, users, is_admin=True)
    resp = post_json(client, "/api/building/nodeadd", {"buildingId": "B1", "nodeId": "a"})
    assert resp.status_code == 200
    assert session.calls[-1].method == "POST"
    assert session.calls[-1].path == "/building/nodeadd"


def test_proxy_backend_down(client, session):
    session.fail = True
    resp = client.get("/api/map/all")
    assert resp.status_code == 502
    assert "error" in resp.get_json()


def test_proxy_method_not_allowed(client):
    assert client.get("/api/building/setpolygon").status_code == 405


def test_api_user(client, users):
    other = users.create("bob@example.com", "longenough")
    assert client.get("/api/user").get_json() == {"curUser": None}
    assert client.get("/api/user?id=" + other["id"]).get_json() == {"curUser": None}

    user = login_as(client, users)
    data = client.get("/api/user").get_json()["curUser"]
    assert data["email"] == "ada@example.com" and data["isAdmin"] is False
    assert "password_hash" not in data
    assert client.get("/api/user?id=" + user["id"]).get_json()["curUser"]["email"] == "ada@example.com"
    assert client.get("/api/user?id=" + other["id"]).status_code == 403


def test_api_user_admin_lookup(client, users):
    other = users.create("bob@example.com", "longenough")
    login_as(client, users, is_admin=True)
    data = client.get("/api/user?id=" + other["id"]).get_json()["curUser"]
    assert data["email"] == "bob@example.com"
    assert client.get("/api/user?id=404").status_code == 404


def test_session_state_evicts_least_recently_used(flask_app, monkeypatch):
    monkeypatch.setattr(app_module, "_STATE_LIMIT", 2)
    made = []

    def factory(api):
        made.append(object())
        return made[-1]

    with flask_app.test_request_context():
        app_module.session["state_token"] = "t1"
        first = app_module.session_state("a", factory)
        app_module.session_state("b", factory)
        assert app_module.session_state("a", factory) is first
        app_module.session_state("c", factory)
        assert list(app_module._STATE) == [("t1", "a"), ("t1", "c")]
        assert app_module.session_state("a", factory) is first
    assert len(made) == 3


# --------------------------------------------------------------------
# Navigation pages
# --------------------------------------------------------------------
def test_index_lists_buildings(client):
    resp = client.get("/")
    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert "Library" in html and "Gym" in html
    assert "ADA" in html


def test_index_requires_destination(client):
    resp = client.post("/", data={"dest": ""})
    assert resp.status_code == 302


def test_index_builds_route(client):
    resp = client.post("/", data={
        "dest": "B1", "nav_mode": "1", "action": "route",
        "user_lat": "42.4219", "user_lon": "-76.4952", "user_acc": "6",
    })
    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert "Library" in html
    assert "Total distance" in html
    assert "Start tracking" in html


def test_index_preview_shows_building_only(client):
    resp = client.post("/", data={"dest": "B1", "action": "preview"})
    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert "Building focus" in html
    assert "Total distance" not in html


def test_index_route_without_location_flashes(client):
    resp = client.post("/", data={"dest": "B1", "action": "route"})
    assert resp.status_code == 200
    assert "Tap Locate Me" in resp.get_data(as_text=True)


def test_track_api_lifecycle(client):
    r = post_json(client, "/api/track/update", {"lat": 42.42, "lng": -76.49})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Tracking is not active."

    r = post_json(client, "/api/track/start", {"lat": 42.4219, "lng": -76.4952, "heading": 90, "building": "B1"})
    assert r.status_code == 200
    data = r.get_json()
    assert data["camera"]["zoom"] == 20 and data["camera"]["bearing"] == 90
    assert data["stage"] == "tracking"
    assert data["route"]["features"][0]["geometry"]["type"] == "LineString"

    r = post_json(client, "/api/track/update", {"lat": 42.4220, "lng": -76.4951, "heading": 180})
    assert r.get_json()["camera"]["bearing"] == 180

    r = post_json(client, "/api/track/stop")
    assert r.get_json()["stage"] == "idle"


def test_track_api_bad_coordinates(client):
    r = post_json(client, "/api/track/start", {"lat": "north", "lng": -76.49, "building": "B1"})
    assert r.status_code == 400


def test_bluelight_page_and_api(client):
    assert client.get("/bluelight").status_code == 200
    resp = client.post("/bluelight", data={"user_lat": "42.4219", "user_lon": "-76.4952"})
    assert resp.status_code == 200
    assert "Heading to blue light" in resp.get_data(as_text=True)

    data = post_json(client, "/api/bluelight/path", {"lat": 42.4219, "lng": -76.4952}).get_json()
    assert data["dest"] == "e"
    assert len(data["route"]["features"]) == 2
    cam = post_json(client, "/api/bluelight/start").get_json()["camera"]
    assert cam["zoom"] == 18
    post_json(client, "/api/bluelight/stop")


# --------------------------------------------------------------------
# Admin editors
# --------------------------------------------------------------------
def test_editors_require_roles(client, users):
    assert client.get("/route-editor").status_code == 403
    assert client.get("/building-editor").status_code == 403
    assert post_json(client, "/navmodes/api/add", {"name": "Bike"}).status_code == 403

    login_as(client, users, is_route_manager=True)
    assert client.get("/route-editor").status_code == 200
    assert client.get("/building-editor").status_code == 403


def test_route_editor_api(client, users, session):
    login_as(client, users, is_admin=True)
    client.get("/route-editor")

    vm = post_json(client, "/route-editor/api/map_click", {"lng": -76.49, "lat": 42.42, "altKey": True}).get_json()
    assert len(vm["nodes"]["features"]) == 6

    vm = post_json(client, "/route-editor/api/mode", {"mode": "delete"}).get_json()
    assert vm["mode"] == "delete"
    vm = post_json(client, "/route-editor/api/edge_click", {"key": "b__c"}).get_json()
    assert "b__c" not in [f["properties"]["key"] for f in vm["edges"]["features"]]

    r = post_json(client, "/route-editor/api/mode", {"mode": "bogus"})
    assert r.status_code == 400

    session.on("DELETE", "/map/", status=500)
    r = post_json(client, "/route-editor/api/marker_click", {"id": "a"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Feature could not be deleted."

    exported = client.get("/route-editor/api/export")
    assert "attachment" in exported.headers["Content-Disposition"]
    assert exported.get_json()["type"] == "FeatureCollection"

    assert post_json(client, "/route-editor/api/import", {"geojson": {"type": "nope"}}).status_code == 400
    assert post_json(client, "/route-editor/api/teleport").status_code == 404


def test_route_editor_backend_down(client, users, session):
    login_as(client, users, is_admin=True)
    session.fail = True
    r = post_json(client, "/route-editor/api/reload")
    assert r.status_code == 502


def test_building_editor_api(client, users, session):
    login_as(client, users, is_admin=True)
    assert client.get("/building-editor").status_code == 200
    feature = {
        "type": "Feature", "id": "poly-9", "properties": {},
        "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]},
    }
    data = post_json(client, "/building-editor/api/create", {"feature": feature}).get_json()
    assert data["current"]["id"] == "poly-9"
    data = post_json(client, "/building-editor/api/rename", {"name": "Annex"}).get_json()
    assert data["current"]["name"] == "Annex"
    assert session.calls_to("PUT", "/building/")[-1].body == {"id": "poly-9", "name": "Annex"}


def test_navmodes_api(client, users, session):
    login_as(client, users, is_route_manager=True)
    r = post_json(client, "/navmodes/api/add", {"name": "ADA"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "Can't have duplicate names!"

    r = post_json(client, "/navmodes/api/add", {"name": "Bike ", "fromThrough": True})
    assert r.status_code == 200
    assert session.calls_to("POST", "/navmode/")[-1].body == {"name": "Bike", "fromThrough": True}
    assert "NavModes" in client.get("/navmodes/api/list").get_json()


# --------------------------------------------------------------------
# Accounts
# --------------------------------------------------------------------
def test_signup_verify_login_logout(client, flask_app, users):
    resp = client.post("/account/signup", data={"email": "ada@example.com", "password": "longenough", "name": "Ada"})
    assert resp.status_code == 302
    user = users.find_by_email("ada@example.com")

    resp = client.post("/account/login", data={"email": "ada@example.com", "password": "longenough"})
    assert resp.status_code == 200
    assert "Email not verified" in resp.get_data(as_text=True)

    token = make_token(flask_app.secret_key, "verify", user["id"])
    assert client.get(f"/account/verify/{token}").status_code == 302

    resp = client.post("/account/login", data={"email": "ada@example.com", "password": "longenough"})
    assert resp.status_code == 302
    with client.session_transaction() as sess:
        assert sess["user_id"] == user["id"]

    client.get("/account/logout")
    with client.session_transaction() as sess:
        assert "user_id" not in sess


def test_signup_errors_are_shown(client):
    resp = client.post("/account/signup", data={"email": "ada@example.com", "password": "short"})
    assert resp.status_code == 200
    assert "at least 8 characters" in resp.get_data(as_text=True)


def test_bad_verify_link(client):
    resp = client.get("/account/verify/garbage", follow_redirects=True)
    assert "This link is invalid" in resp.get_data(as_text=True)


def test_password_reset_pages(client, flask_app, users):
    user = users.create("ada@example.com", "longenough")
    users.mark_verified(user["id"])
    assert client.post("/account/reset", data={"email": "ada@example.com"}).status_code == 302

    token = make_token(flask_app.secret_key, "reset", user["id"])
    assert client.get(f"/account/reset/{token}").status_code == 200
    assert client.post(f"/account/reset/{token}", data={"password": "another-pass"}).status_code == 302
    resp = client.post("/account/login", data={"email": "ada@example.com", "password": "another-pass"})
    assert resp.status_code == 302


def test_admin_login(client, flask_app, monkeypatch):
    assert client.get("/admin_login").status_code == 403

    monkeypatch.setitem(flask_app.config, "ADMIN_PWHASH", generate_password_hash("letmein"))
    resp = client.post("/admin_login", data={"password": "wrong"})
    assert "Invalid password." in resp.get_data(as_text=True)

    resp = client.post("/admin_login", data={"password": "letmein"})
    assert resp.status_code == 302
    assert client.get("/building-editor").status_code == 200

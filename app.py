#!/usr/bin/env python3
"""
IC Maps: campus wayfinding web client.

Server-rendered Flask front end for the IC Maps backend. The backend owns the
map graph, buildings, navigation modes and the path search; this app proxies
its REST API, assembles routes from the edge keys it returns, renders maps,
and hosts the admin editors (route graph, building polygons, nav modes, blue
lights).

- /api/* routes forward method, query string and JSON body to the backend and
  answer with the backend's status.
- Editor and tracking state is kept per browser session in process memory.
- Accounts live in a locked CSV file; admin pages need an admin (or route
  manager) account, or the break-glass password from ICMAPS_ADMIN_PWHASH.
"""

import secrets
from collections import OrderedDict
from functools import partial, wraps

from flask import (
    Flask, Response, render_template_string, request, redirect, url_for, flash,
    jsonify, abort, session, current_app
)
from werkzeug.security import check_password_hash

from accounts import Accounts, AuthError, UserStore, normalize_auth_error, public_user, send_email
from building_editor import BuildingEditor
from config import SETTINGS
from graph_editor import EditorError, RouteEditor
from graph_model import GraphImportError
from icmaps_api import BackendClient, BackendError
from map_render import BLUE_LIGHT_ROUTE, make_map_html
from navigation import BlueLightSession, NavigationError, NavigationSession
from navmode_editor import NavModeEditor
from route_builder import route_steps
from templates import (
    TEMPLATE_ADMIN_LOGIN, TEMPLATE_BLUELIGHT, TEMPLATE_BUILDING_EDITOR, TEMPLATE_FORM,
    TEMPLATE_LOGIN, TEMPLATE_RESET, TEMPLATE_RESET_REQUEST, TEMPLATE_RESULT,
    TEMPLATE_ROUTE_EDITOR, TEMPLATE_SIGNUP,
)

# --------------------------------------------------------------------
# Flask app
# --------------------------------------------------------------------
app = Flask(__name__)
app.secret_key = SETTINGS.SECRET
# Recommended cookie hardening (requires HTTPS for SECURE=True)
app.config.update(
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_SECURE=False,  # set True in production with HTTPS
    ADMIN_PWHASH=SETTINGS.ADMIN_PWHASH,
    USERS_CSV=SETTINGS.USERS_CSV,
    APP_URL=SETTINGS.APP_URL,
    RESEND_API_KEY=SETTINGS.RESEND_API_KEY,
    EMAIL_FROM=SETTINGS.EMAIL_FROM,
)
app.extensions["icmaps_api"] = BackendClient(SETTINGS.BACKEND_URL, timeout=SETTINGS.REQUEST_TIMEOUT)


def backend() -> BackendClient:
    return current_app.extensions["icmaps_api"]


def accounts() -> Accounts:
    cfg = current_app.config
    mail = partial(send_email, api_key=cfg["RESEND_API_KEY"], sender=cfg["EMAIL_FROM"])
    return Accounts(UserStore(cfg["USERS_CSV"]), current_app.secret_key, cfg["APP_URL"], mail=mail)


# --------------------------------------------------------------------
# Per-session state (editor / navigation), kept in process memory
# --------------------------------------------------------------------
_STATE = OrderedDict()
_STATE_LIMIT = 512


def session_state(kind, factory):
    token = session.get("state_token")
    if not token:
        token = secrets.token_hex(16)
        session["state_token"] = token
    key = (token, kind)
    obj = _STATE.get(key)
    if obj is not None:
        _STATE.move_to_end(key)
        return obj
    # least recently used goes first
    while len(_STATE) >= _STATE_LIMIT:
        _STATE.popitem(last=False)
    obj = factory(backend())
    _STATE[key] = obj
    return obj


def drop_session_state(kind):
    token = session.get("state_token")
    if token:
        _STATE.pop((token, kind), None)


# --------------------------------------------------------------------
# Access control
# --------------------------------------------------------------------
def current_user():
    user_id = session.get("user_id")
    if not user_id:
        return None
    return accounts().store.get(user_id)


def require_admin():
    """Admin pages: break-glass session flag or an account with the admin role."""
    if session.get("is_admin"):
        return
    user = current_user()
    if user and user["is_admin"]:
        return
    abort(403)


def require_route_manager():
    if session.get("is_admin"):
        return
    user = current_user()
    if user and (user["is_admin"] or user["is_route_manager"]):
        return
    abort(403)


def json_errors(fn):
    """Turn editor/navigation failures into JSON error answers."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (EditorError, NavigationError, GraphImportError) as e:
            return jsonify({"error": str(e)}), 400
        except BackendError as e:
            current_app.logger.error("backend failure in %s: %s", request.path, e)
            return jsonify({"error": str(e)}), 502
    return wrapper


def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _float(data, key):
    try:
        return float(data.get(key))
    except (TypeError, ValueError):
        raise NavigationError(f"Invalid {key}")


def _opt_float(data, key):
    v = data.get(key)
    if v is None or v == "":
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


# --------------------------------------------------------------------
# Backend proxy
# --------------------------------------------------------------------
PROXY_ROUTES = [
    # (local path, backend path, methods, guard for non-GET methods)
    ("/api/map", "/map/", ["POST", "PUT", "DELETE"], require_route_manager),
    ("/api/map/all", "/map/all", ["GET"], None),
    ("/api/map/bluelight", "/map/bluelight", ["GET", "POST"], require_route_manager),
    ("/api/map/navigateTo", "/map/navigateTo", ["GET"], None),
    ("/api/building", "/building/", ["GET", "POST", "PUT", "DELETE"], require_admin),
    ("/api/building/buildingpos", "/building/buildingpos", ["GET"], None),
    ("/api/building/nodesget", "/building/nodesget", ["GET"], None),
    ("/api/building/nodeadd", "/building/nodeadd", ["POST"], require_admin),
    ("/api/building/noderemove", "/building/noderemove", ["POST"], require_admin),
    ("/api/building/setpolygon", "/building/setpolygon", ["PATCH", "DELETE"], require_admin),
    ("/api/navmode", "/navmode/", ["GET", "POST", "PUT", "DELETE"], require_route_manager),
    ("/api/navmode/all", "/navmode/all", ["GET"], None),
    ("/api/navmode/allids", "/navmode/allids", ["GET"], None),
    ("/api/navmode/setstatus", "/navmode/setstatus", ["PATCH"], require_route_manager),
]


def _make_proxy(backend_path, guard=None):
    def proxy():
        body = None
        if request.method != "GET":
            if guard is not None:
                guard()
            body = request.get_json(silent=True)
            if body is None:
                return jsonify({"error": "Invalid JSON body"}), 400
        try:
            text, status = backend().forward(
                request.method, backend_path, request.query_string.decode(), body
            )
        except BackendError as e:
            current_app.logger.error("proxy %s %s failed: %s", request.method, backend_path, e)
            return jsonify({"error": str(e)}), 502
        if request.method == "DELETE" or not text:
            text = "null"
        return Response(text, status=status, mimetype="application/json")
    return proxy


for _path, _backend_path, _methods, _guard in PROXY_ROUTES:
    app.add_url_rule(
        _path,
        endpoint="proxy" + _path.replace("/", "_"),
        view_func=_make_proxy(_backend_path, _guard),
        methods=_methods,
    )


@app.route("/api/user", methods=["GET"])
def api_user():
    me = current_user()
    if me is None and not session.get("is_admin"):
        return jsonify({"curUser": None}), 200
    user_id = (request.args.get("id") or "").strip()
    if not user_id or (me is not None and user_id == str(me["id"])):
        if me is None:
            return jsonify({"curUser": None}), 200
        return jsonify({"curUser": public_user(me)})
    # other accounts are visible to admins only
    require_admin()
    user = accounts().store.get(user_id)
    if user is None:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"curUser": public_user(user)})


# --------------------------------------------------------------------
# Navigation
# --------------------------------------------------------------------
@app.route("/", methods=["GET", "POST"])
def index():
    nav = session_state("nav", NavigationSession)
    try:
        nav.load()
    except NavigationError as e:
        flash(str(e))
    except BackendError as e:
        app.logger.error("backend unavailable: %s", e)
        flash("The map service is unavailable right now.")

    if request.method == "POST":
        dest = (request.form.get("dest") or "").strip()
        nav_mode = (request.form.get("nav_mode") or "").strip()
        if nav_mode:
            nav.set_nav_mode(nav_mode)

        user_lat = request.form.get("user_lat")
        user_lon = request.form.get("user_lon")
        if user_lat and user_lon and user_lat.strip() and user_lon.strip():
            try:
                nav.set_user_position(
                    float(user_lon), float(user_lat),
                    _opt_float(request.form, "user_acc"), _opt_float(request.form, "user_heading"),
                )
            except ValueError:
                flash("Location error: invalid coordinates.")
                return redirect(url_for("index"))

        if not dest:
            flash("You must select a destination.")
            return redirect(url_for("index"))

        try:
            nav.select_destination(dest)
            route = None
            if request.form.get("action") != "preview":
                route = nav.show_route()
        except NavigationError as e:
            flash(str(e))
            if nav.dest_pos is None:
                return redirect(url_for("index"))
            route = None
        except BackendError as e:
            app.logger.error("route lookup failed: %s", e)
            flash("Failed to build route. Please try again.")
            return redirect(url_for("index"))

        nav.load_graph()
        map_html = make_map_html(
            nav.markers, nav.edges,
            path_keys=nav.path,
            route_coords=nav.route_coords,
            show_nodes=False,
            building_poly=nav.building_poly,
            building_nodes=nav.building_nodes,
            path_node_ids=nav.path_node_ids,
            user_pos=nav.user_pos,
            accuracy_ring=nav.accuracy_ring(),
            dest_pos=nav.dest_pos,
        )
        building = nav.selected_building or {"id": dest, "name": dest}
        segments = route_steps(route, nav.markers) if route else []
        return render_template_string(
            TEMPLATE_RESULT,
            building=building,
            stage=nav.stage_details(),
            segments=segments,
            total=route.length_m if route else 0.0,
            map_html=map_html,
            tracking_ready=route is not None,
            nav_mode=nav.cur_nav_mode,
        )

    # GET
    return render_template_string(
        TEMPLATE_FORM,
        buildings=sorted(nav.buildings, key=lambda b: str(b.get("name", ""))),
        nav_modes=nav.nav_modes,
        cur_nav_mode=nav.cur_nav_mode,
        user=current_user(),
    )


@app.route("/api/track/<action>", methods=["POST"])
@json_errors
def api_track(action):
    nav = session_state("nav", NavigationSession)
    data = json_body()
    if action == "start":
        if not nav.buildings:
            nav.load()
        if data.get("navMode") not in (None, ""):
            nav.set_nav_mode(data["navMode"])
        nav.set_user_position(_float(data, "lng"), _float(data, "lat"), _opt_float(data, "accuracy"), _opt_float(data, "heading"))
        if data.get("building") and str(data["building"]) != nav.selected_dest:
            nav.select_destination(str(data["building"]))
        camera = nav.start_tracking()
        return jsonify({"camera": camera.to_dict(), "route": nav.route_geojson(), "stage": nav.stage})
    if action == "update":
        camera = nav.update_position(_float(data, "lng"), _float(data, "lat"), _opt_float(data, "heading"), _opt_float(data, "accuracy"))
        return jsonify({"camera": camera.to_dict(), "accuracy": nav.accuracy_ring()})
    if action == "heading":
        nav.set_device_heading(_opt_float(data, "heading"))
        return jsonify({"ok": True})
    if action == "stop":
        nav.stop_tracking()
        return jsonify({"camera": nav.camera.to_dict(), "stage": nav.stage})
    abort(404)


# --------------------------------------------------------------------
# Blue light
# --------------------------------------------------------------------
@app.route("/bluelight", methods=["GET", "POST"])
def bluelight():
    bl = session_state("bluelight", BlueLightSession)
    map_html = None
    if request.method == "POST":
        try:
            lat = float(request.form.get("user_lat", ""))
            lng = float(request.form.get("user_lon", ""))
        except ValueError:
            flash("Location is required to start the emergency route.")
            return redirect(url_for("bluelight"))
        bl.set_user_position(lng, lat, _opt_float(request.form, "user_acc"), _opt_float(request.form, "user_heading"))
        try:
            bl.load_graph()
            bl.load_path(lat, lng)
        except (NavigationError, BackendError) as e:
            app.logger.error("blue light route failed: %s", e)
            flash("Failed to load blue light route.")
        if not bl.path:
            flash("No blue light route found.")
        map_html = make_map_html(
            bl.markers, bl.edges,
            path_keys=bl.path,
            show_nodes=False,
            user_pos=bl.user_pos,
            accuracy_ring=bl.accuracy_ring(),
            dest_pos=bl.dest_pos(),
            route_color=BLUE_LIGHT_ROUTE,
        )
    return render_template_string(TEMPLATE_BLUELIGHT, map_html=map_html, dest=bl.dest)


@app.route("/api/bluelight/<action>", methods=["POST"])
@json_errors
def api_bluelight(action):
    bl = session_state("bluelight", BlueLightSession)
    data = json_body()
    if action == "path":
        lat, lng = _float(data, "lat"), _float(data, "lng")
        bl.set_user_position(lng, lat, _opt_float(data, "accuracy"), _opt_float(data, "heading"))
        if not bl.markers:
            bl.load_graph()
        bl.load_path(lat, lng)
        return jsonify({"dest": bl.dest, "destPos": bl.dest_pos(), "route": bl.route_geojson()})
    if action == "start":
        return jsonify({"camera": bl.start_tracking().to_dict()})
    if action == "update":
        camera = bl.update_position(_float(data, "lng"), _float(data, "lat"), _opt_float(data, "heading"), _opt_float(data, "accuracy"))
        return jsonify({"camera": camera.to_dict(), "accuracy": bl.accuracy_ring()})
    if action == "stop":
        bl.stop_tracking()
        return jsonify({"camera": bl.camera.to_dict()})
    abort(404)


# --------------------------------------------------------------------
# Route editor
# --------------------------------------------------------------------
@app.route("/route-editor")
def route_editor():
    require_route_manager()
    editor = session_state("route_editor", RouteEditor)
    try:
        editor.load()
    except (EditorError, BackendError) as e:
        app.logger.error("route editor load failed: %s", e)
        flash(str(e))
    view = SETTINGS.DEFAULT_VIEW
    return render_template_string(TEMPLATE_ROUTE_EDITOR, state=editor.view_model(), view=view)


def _editor_event(editor, event, data):
    if event == "map_click":
        editor.handle_map_click(_float(data, "lng"), _float(data, "lat"), bool(data.get("altKey")))
    elif event == "marker_click":
        editor.handle_marker_click(str(data.get("id", "")))
    elif event == "marker_drag":
        editor.handle_marker_drag_end(str(data.get("id", "")), _float(data, "lng"), _float(data, "lat"))
    elif event == "edge_click":
        editor.handle_edge_click(str(data.get("key", "")))
    elif event == "mode":
        editor.set_mode(str(data.get("mode", "")))
    elif event == "bidirectional":
        editor.set_bi_directional(data.get("value"))
    elif event == "show_only_navmode":
        editor.set_show_only_nav_mode(data.get("value"))
    elif event == "toggle_nodes":
        editor.toggle_nodes()
    elif event == "navmode":
        editor.select_nav_mode(data.get("id"))
    elif event == "building":
        editor.select_building(data.get("id"))
    elif event == "building_clear":
        editor.clear_building_nodes()
    elif event == "building_reorder":
        editor.reorder_building_node(str(data.get("from", "")), str(data.get("over", "")))
    elif event == "import":
        editor.import_geojson(data.get("geojson"))
    elif event == "reload":
        editor.load()
    else:
        abort(404)


@app.route("/route-editor/api/<event>", methods=["GET", "POST"])
@json_errors
def route_editor_api(event):
    require_route_manager()
    editor = session_state("route_editor", RouteEditor)
    if event == "export":
        resp = jsonify(editor.export_geojson())
        resp.headers["Content-Disposition"] = "attachment; filename=graph.geojson"
        return resp
    if request.method == "POST" and event != "state":
        _editor_event(editor, event, json_body())
    return jsonify(editor.view_model())


# --------------------------------------------------------------------
# Building editor
# --------------------------------------------------------------------
def _building_view(editor):
    return {
        "buildings": editor.buildings,
        "current": editor.current,
        "polygons": editor.feature_collection(),
    }


@app.route("/building-editor")
def building_editor():
    require_admin()
    editor = session_state("building_editor", BuildingEditor)
    try:
        editor.load()
    except (EditorError, BackendError) as e:
        app.logger.error("building editor load failed: %s", e)
        flash(str(e))
    return render_template_string(TEMPLATE_BUILDING_EDITOR, state=_building_view(editor), view=SETTINGS.DEFAULT_VIEW)


@app.route("/building-editor/api/<event>", methods=["GET", "POST"])
@json_errors
def building_editor_api(event):
    require_admin()
    editor = session_state("building_editor", BuildingEditor)
    data = json_body()
    if request.method == "POST":
        if event == "create":
            editor.on_create(data.get("feature"))
        elif event == "update":
            editor.on_update(data.get("feature"))
        elif event == "delete":
            editor.on_delete(data.get("feature"))
        elif event == "select":
            editor.select(data.get("id"))
        elif event == "deselect":
            editor.clear_selection()
        elif event == "rename":
            editor.rename(str(data.get("name", "")))
        elif event == "remove_polygon":
            editor.remove_polygon(data.get("id"))
        elif event != "state":
            abort(404)
    return jsonify(_building_view(editor))


# --------------------------------------------------------------------
# Navigation modes
# --------------------------------------------------------------------
@app.route("/navmodes/api/<action>", methods=["GET", "POST"])
@json_errors
def navmodes_api(action):
    require_route_manager()
    editor = NavModeEditor(backend())
    editor.refresh()
    data = json_body()
    if action == "add":
        editor.add(data.get("name"), bool(data.get("fromThrough")))
    elif action == "edit":
        editor.edit(data.get("id"), data.get("name"))
    elif action == "delete":
        editor.delete(data.get("id"))
    elif action != "list":
        abort(404)
    drop_session_state("route_editor")
    return jsonify({"NavModes": editor.nav_modes})


# --------------------------------------------------------------------
# Accounts
# --------------------------------------------------------------------
@app.route("/account/signup", methods=["GET", "POST"])
def signup():
    if request.method == "POST":
        try:
            accounts().sign_up(
                request.form.get("email", ""),
                request.form.get("password", ""),
                request.form.get("name", ""),
            )
        except AuthError as e:
            flash(normalize_auth_error(e))
            return render_template_string(TEMPLATE_SIGNUP)
        flash("Account created! Check your email to verify your address.")
        return redirect(url_for("login"))
    return render_template_string(TEMPLATE_SIGNUP)


@app.route("/account/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        try:
            user = accounts().sign_in(request.form.get("email", ""), request.form.get("password", ""))
        except AuthError as e:
            flash(normalize_auth_error(e))
            return render_template_string(TEMPLATE_LOGIN)
        session["user_id"] = user["id"]
        flash("Logged in successfully")
        return redirect(url_for("index"))
    return render_template_string(TEMPLATE_LOGIN)


@app.route("/account/logout")
def logout():
    session.pop("user_id", None)
    session.pop("is_admin", None)
    flash("Logged out.")
    return redirect(url_for("index"))


@app.route("/account/verify/<token>")
def verify_email(token):
    try:
        accounts().verify_email(token)
    except AuthError as e:
        flash(str(e))
        return redirect(url_for("signup"))
    flash("Email verified. You can log in now.")
    return redirect(url_for("login"))


@app.route("/account/reset", methods=["GET", "POST"])
def reset_request():
    if request.method == "POST":
        accounts().request_password_reset(request.form.get("email", ""))
        flash("If that address has an account, a reset link is on its way.")
        return redirect(url_for("login"))
    return render_template_string(TEMPLATE_RESET_REQUEST)


@app.route("/account/reset/<token>", methods=["GET", "POST"])
def reset_password(token):
    if request.method == "POST":
        try:
            accounts().reset_password(token, request.form.get("password", ""))
        except AuthError as e:
            flash(str(e))
            return render_template_string(TEMPLATE_RESET, token=token)
        flash("Password updated. You can log in now.")
        return redirect(url_for("login"))
    return render_template_string(TEMPLATE_RESET, token=token)


# --------------------- Admin login/logout ----------------------------
@app.route("/admin_login", methods=["GET", "POST"])
def admin_login():
    pwhash = current_app.config["ADMIN_PWHASH"]
    # If password auth isn't configured, deny
    if not pwhash:
        abort(403)

    if request.method == "POST":
        pw = (request.form.get("password") or "").strip()
        if check_password_hash(pwhash, pw):
            session["is_admin"] = True
            flash("Admin unlocked.")
            return redirect(url_for("route_editor"))
        flash("Invalid password.")
    return render_template_string(TEMPLATE_ADMIN_LOGIN)


# --------------------------------------------------------------------
# Entrypoint
# --------------------------------------------------------------------
if __name__ == "__main__":
    app.run(debug=False, host=SETTINGS.HOST, port=SETTINGS.PORT)

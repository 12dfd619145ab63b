#!/usr/bin/env python3
"""Terminal client: pick a building, enter your position, get the route and map.html."""

import sys

from config import SETTINGS
from graph_model import parse_map_features
from icmaps_api import BackendClient, BackendError
from map_render import make_map
from route_builder import build_route, path_keys_from_response, route_steps


def list_buildings(api):
    resp = api.get_all_buildings() or {}
    return sorted(resp.get("buildings") or [], key=lambda b: str(b.get("name", "")))


def ask_number(prompt, count, input_fn=input):
    while True:
        try:
            n = int(input_fn(prompt))
            if 1 <= n <= count:
                return n
            print(f"Please enter a number between 1 and {count}.")
        except ValueError:
            print("Invalid input. Please enter a number.")


def ask_float(prompt, input_fn=input):
    while True:
        try:
            return float(input_fn(prompt))
        except ValueError:
            print("Invalid input. Please enter a number.")


def route_to(api, building_id, lat, lng, nav_mode="1"):
    """Route from (lat, lng) to a building; returns (route, markers, edges)."""
    keys = path_keys_from_response(api.get_route_to(building_id, lat, lng, nav_mode))
    if not keys:
        return None, [], []
    resp = api.get_all_map_features_nav_mode(nav_mode) or {}
    markers, edges = parse_map_features(resp.get("data", resp))
    return build_route(keys, markers, edges), markers, edges


def main(api=None, input_fn=input, out_path="map.html"):
    api = api or BackendClient(SETTINGS.BACKEND_URL, timeout=SETTINGS.REQUEST_TIMEOUT)
    try:
        buildings = list_buildings(api)
    except BackendError as e:
        print(f"Backend unavailable: {e}")
        return 1
    if not buildings:
        print("No buildings available.")
        return 1

    print("Available buildings:")
    for i, b in enumerate(buildings, 1):
        print(f" {i}: {b.get('name')}")

    dest = buildings[ask_number("\nEnter the number for the DESTINATION: ", len(buildings), input_fn) - 1]
    lat = ask_float("Your latitude: ", input_fn)
    lng = ask_float("Your longitude: ", input_fn)

    modes = (api.get_all_nav_modes() or {}).get("NavModes") or []
    nav_mode = str(modes[0]["id"]) if modes else "1"

    route, markers, edges = route_to(api, str(dest["id"]), lat, lng, nav_mode)
    print(f"\nRoute to {dest.get('name')}:")
    if route is None:
        print("No route found.")
        print("\nNo map generated (no route found).")
        return 1

    for desc, _dist in route_steps(route, markers):
        print(f" - {desc}")
    print(f"\nTotal distance: {route.length_m:.1f} m")

    m = make_map(
        markers, edges,
        path_keys=route.keys,
        route_coords=route.coords,
        show_nodes=False,
        path_node_ids=route.node_ids,
    )
    m.save(out_path)
    print(f"\nInteractive map saved as {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

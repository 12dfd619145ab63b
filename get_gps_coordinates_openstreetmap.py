#!/usr/bin/env python3
"""
Geocode building names through OpenStreetMap (Nominatim) into a CSV, and
optionally register each hit with the backend as a building.

usage: get_gps_coordinates_openstreetmap.py [--register] "Name, City" ...
"""

import sys
import time

import pandas as pd
from geopy.geocoders import Nominatim

from config import SETTINGS
from icmaps_api import BackendClient

COLUMNS = ["name", "lat", "lng"]


def geocode_buildings(names, geolocator=None, pause=1.0):
    geolocator = geolocator or Nominatim(user_agent="icmaps_buildings")
    results = []
    for name in names:
        location = geolocator.geocode(name)
        if location:
            print(f"{name}: {location.latitude}, {location.longitude}")
            results.append([name, location.latitude, location.longitude])
        else:
            print(f"Not found: {name}")
        if pause:
            time.sleep(pause)  # Be polite to the API!
    return pd.DataFrame(results, columns=COLUMNS)


def register_buildings(api, df, clock=time.time):
    """Add each geocoded row as a building without a polygon; returns the ids stored."""
    stored = []
    for i, row in df.iterrows():
        building_id = f"B-{int(clock() * 1000)}-{i}"
        if api.add_building(building_id, row["name"], float(row["lat"]), float(row["lng"]), None):
            stored.append(building_id)
        else:
            print(f"Backend rejected: {row['name']}")
    return stored


def main(argv=None, api=None, geolocator=None, out_path="buildings_auto.csv"):
    argv = list(sys.argv[1:] if argv is None else argv)
    register = "--register" in argv
    names = [a for a in argv if a != "--register"]
    if not names:
        print(__doc__.strip())
        return 2

    df = geocode_buildings(names, geolocator)
    df.to_csv(out_path, index=False)
    print(f"Saved {len(df)} rows to {out_path}")

    if register and not df.empty:
        api = api or BackendClient(SETTINGS.BACKEND_URL, timeout=SETTINGS.REQUEST_TIMEOUT)
        stored = register_buildings(api, df)
        print(f"Registered {len(stored)} buildings")
    return 0


if __name__ == "__main__":
    sys.exit(main())

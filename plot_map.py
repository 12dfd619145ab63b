#!/usr/bin/env python3
"""Folium map with one marker per building."""

import sys

import folium
import pandas as pd

from config import SETTINGS
from icmaps_api import BackendClient


def buildings_frame(buildings) -> pd.DataFrame:
    df = pd.DataFrame(buildings or [], columns=["id", "name", "lat", "lng"])
    df["lat"] = pd.to_numeric(df["lat"], errors="coerce")
    df["lng"] = pd.to_numeric(df["lng"], errors="coerce")
    return df.dropna(subset=["lat", "lng"]).reset_index(drop=True)


def building_map(buildings) -> folium.Map:
    df = buildings_frame(buildings)
    if df.empty:
        v = SETTINGS.DEFAULT_VIEW
        center = [v["lat"], v["lng"]]
    else:
        # Get the campus center for initial map location
        center = [df["lat"].mean(), df["lng"].mean()]

    m = folium.Map(location=center, zoom_start=17)

    # Add each building as a marker
    for _, row in df.iterrows():
        folium.Marker(
            [row["lat"], row["lng"]],
            popup=str(row["name"]),
            tooltip=str(row["name"]),
        ).add_to(m)
    return m


def main(api=None, out_path="campus_buildings.html"):
    api = api or BackendClient(SETTINGS.BACKEND_URL, timeout=SETTINGS.REQUEST_TIMEOUT)
    buildings = (api.get_all_buildings() or {}).get("buildings") or []
    building_map(buildings).save(out_path)
    print(f"Map saved as {out_path}. Open it in your browser.")
    return 0


if __name__ == "__main__":
    sys.exit(main())

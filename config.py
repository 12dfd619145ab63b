"""
Runtime settings for the IC Maps client, read from the environment (and an
optional .env file next to the app).
"""

import os
import secrets

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(BASE_DIR, ".env"))


class Settings:
    BACKEND_URL = os.environ.get("ICMAPS_BACKEND_URL", "http://localhost:8080").rstrip("/")
    REQUEST_TIMEOUT = float(os.environ.get("ICMAPS_REQUEST_TIMEOUT", "10"))

    SECRET = os.environ.get("ICMAPS_SECRET") or secrets.token_hex(32)
    ADMIN_PWHASH = os.environ.get("ICMAPS_ADMIN_PWHASH")  # break-glass admin login
    USERS_CSV = os.environ.get("ICMAPS_USERS_CSV", os.path.join(BASE_DIR, "users.csv"))

    APP_URL = os.environ.get("ICMAPS_APP_URL", "http://localhost:5555").rstrip("/")
    RESEND_API_KEY = os.environ.get("RESEND_API_KEY")
    EMAIL_FROM = os.environ.get("ICMAPS_EMAIL_FROM", "IC Maps <onboarding@resend.dev>")

    HOST = "127.0.0.1"
    PORT = 5555

    # Map view
    DEFAULT_VIEW = {"lng": -76.494131, "lat": 42.422108, "zoom": 15.5}
    TOP_LEFT = {"lng": -76.505098, "lat": 42.427959}
    BOTTOM_RIGHT = {"lng": -76.483915, "lat": 42.410851}


SETTINGS = Settings()

"""
User accounts: a small CSV-backed store plus e-mail verification and password
reset using signed tokens.

Passwords are stored as werkzeug hashes. Sign-in requires a verified e-mail
address; verification and reset links are sent through Resend.
"""

import csv
import logging
import os
from contextlib import contextmanager

import fcntl
import pandas as pd
import requests
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

log = logging.getLogger(__name__)

COLUMNS = ["id", "email", "name", "password_hash", "is_admin", "is_route_manager", "verified"]
BOOL_COLUMNS = ("is_admin", "is_route_manager", "verified")

VERIFY_MAX_AGE = 24 * 3600
RESET_MAX_AGE = 3600

RESEND_URL = "https://api.resend.com/emails"


class AuthError(Exception):
    """Sign-up/sign-in failure with a message safe to show to the user."""


@contextmanager
def locked_file(path: str, mode: str):
    """
    Open a file and acquire an advisory lock for the duration of the context.
    Shared lock for reads ('r'), exclusive for writes/appends ('w','a').
    """
    f = open(path, mode, newline="")
    try:
        lock_mode = fcntl.LOCK_SH
        if "w" in mode or "a" in mode or "+" in mode:
            lock_mode = fcntl.LOCK_EX
        fcntl.flock(f.fileno(), lock_mode)
        yield f
    finally:
        try:
            if "w" in mode or "a" in mode or "+" in mode:
                f.flush()
                os.fsync(f.fileno())
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)
            f.close()


def _as_bool(v) -> bool:
    return str(v).strip().lower() in ("1", "true", "yes")


def clean_users_df(df: pd.DataFrame) -> pd.DataFrame:
    """Trim strings, normalise e-mails and flags, drop rows without id/email."""
    for col in COLUMNS:
        if col not in df.columns:
            df[col] = ""
    df = df[COLUMNS].copy().fillna("")
    for col in COLUMNS:
        df[col] = df[col].astype(str).str.strip()
    df["email"] = df["email"].str.lower()
    for col in BOOL_COLUMNS:
        df[col] = df[col].map(_as_bool)
    df = df[(df["id"] != "") & (df["email"] != "")].reset_index(drop=True)
    return df


class UserStore:
    def __init__(self, path: str):
        self.path = path

    def _ensure(self):
        if not os.path.exists(self.path):
            with locked_file(self.path, "w") as f:
                csv.writer(f).writerow(COLUMNS)

    def _read(self) -> pd.DataFrame:
        self._ensure()
        with locked_file(self.path, "r") as f:
            df = pd.read_csv(f, dtype=str, keep_default_na=False)
        return clean_users_df(df)

    def _write(self, df: pd.DataFrame):
        with locked_file(self.path, "w") as f:
            writer = csv.writer(f)
            writer.writerow(COLUMNS)
            for _, row in df.iterrows():
                writer.writerow([row[c] for c in COLUMNS])

    @staticmethod
    def _to_user(row) -> dict:
        return {c: row[c] for c in COLUMNS}

    def all(self) -> list:
        return [self._to_user(r) for _, r in self._read().iterrows()]

    def get(self, user_id):
        df = self._read()
        hit = df[df["id"] == str(user_id)]
        return None if hit.empty else self._to_user(hit.iloc[0])

    def find_by_email(self, email: str):
        df = self._read()
        hit = df[df["email"] == (email or "").strip().lower()]
        return None if hit.empty else self._to_user(hit.iloc[0])

    def create(self, email: str, password: str, name: str = "") -> dict:
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            raise AuthError("A valid email is required")
        if len(password or "") < 8:
            raise AuthError("Password must be at least 8 characters")
        df = self._read()
        if (df["email"] == email).any():
            raise AuthError("User already exists")

        ids = pd.to_numeric(df["id"], errors="coerce").dropna()
        next_id = int(ids.max()) + 1 if not ids.empty else 1
        user = {
            "id": str(next_id),
            "email": email,
            "name": (name or "").strip(),
            "password_hash": generate_password_hash(password),
            "is_admin": False,
            "is_route_manager": False,
            "verified": False,
        }
        with locked_file(self.path, "a") as f:
            csv.writer(f).writerow([user[c] for c in COLUMNS])
        return user

    def update(self, user_id, **fields) -> dict:
        df = self._read()
        mask = df["id"] == str(user_id)
        if not mask.any():
            raise AuthError("User not found")
        for k, v in fields.items():
            if k not in COLUMNS or k == "id":
                raise KeyError(k)
            df.loc[mask, k] = v
        self._write(df)
        return self._to_user(df[mask].iloc[0])

    def mark_verified(self, user_id) -> dict:
        return self.update(user_id, verified=True)

    def set_password(self, user_id, password: str) -> dict:
        if len(password or "") < 8:
            raise AuthError("Password must be at least 8 characters")
        return self.update(user_id, password_hash=generate_password_hash(password))

    def set_roles(self, user_id, is_admin=None, is_route_manager=None) -> dict:
        fields = {}
        if is_admin is not None:
            fields["is_admin"] = bool(is_admin)
        if is_route_manager is not None:
            fields["is_route_manager"] = bool(is_route_manager)
        return self.update(user_id, **fields)


def public_user(user) -> dict:
    """User record without the password hash."""
    if user is None:
        return None
    return {
        "id": user["id"],
        "email": user["email"],
        "name": user["name"],
        "isAdmin": bool(user["is_admin"]),
        "isRouteManager": bool(user["is_route_manager"]),
    }


# --------------------------------------------------------------------
# Tokens
# --------------------------------------------------------------------
def _serializer(secret: str, purpose: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret, salt=f"icmaps-{purpose}")


def make_token(secret: str, purpose: str, user_id) -> str:
    return _serializer(secret, purpose).dumps(str(user_id))


def read_token(secret: str, purpose: str, token: str, max_age: int) -> str:
    try:
        return _serializer(secret, purpose).loads(token, max_age=max_age)
    except SignatureExpired as e:
        raise AuthError("This link has expired") from e
    except BadSignature as e:
        raise AuthError("This link is invalid") from e


# --------------------------------------------------------------------
# E-mail
# --------------------------------------------------------------------
def send_email(to: str, subject: str, html: str, api_key=None, sender="IC Maps <onboarding@resend.dev>", timeout=10):
    if not api_key:
        log.info("No RESEND_API_KEY configured; email to %s not sent: %s", to, subject)
        return False
    resp = requests.post(
        RESEND_URL,
        headers={"Authorization": f"Bearer {api_key}"},
        json={"from": sender, "to": to, "subject": subject, "html": html},
        timeout=timeout,
    )
    if resp.status_code >= 400:
        log.error("Resend rejected email to %s (%s): %s", to, resp.status_code, resp.text)
        return False
    return True


def _link_email(title: str, label: str, url: str) -> str:
    return (
        f"<h2>{title}</h2>"
        f'<p><a href="{url}">{label}</a></p>'
        '<p style="color:#666;font-size:12px">If you didn’t request this, ignore this email.</p>'
    )


# --------------------------------------------------------------------
# Flows
# --------------------------------------------------------------------
class Accounts:
    def __init__(self, store: UserStore, secret: str, app_url: str, mail=send_email):
        self.store = store
        self.secret = secret
        self.app_url = app_url.rstrip("/")
        self.mail = mail

    def sign_up(self, email: str, password: str, name: str = "") -> dict:
        user = self.store.create(email, password, name)
        token = make_token(self.secret, "verify", user["id"])
        self.mail(
            user["email"],
            "Verify your IC Maps account",
            _link_email("Verify your email", "Verify email", f"{self.app_url}/account/verify/{token}"),
        )
        return user

    def verify_email(self, token: str) -> dict:
        user_id = read_token(self.secret, "verify", token, VERIFY_MAX_AGE)
        return self.store.mark_verified(user_id)

    def sign_in(self, email: str, password: str) -> dict:
        user = self.store.find_by_email(email)
        if user is None or not check_password_hash(user["password_hash"], password or ""):
            raise AuthError("Invalid email or password")
        if not user["verified"]:
            raise AuthError("Email not verified")
        return user

    def request_password_reset(self, email: str) -> bool:
        user = self.store.find_by_email(email)
        if user is None:
            # same answer either way; don't reveal which addresses exist
            return True
        token = make_token(self.secret, "reset", user["id"])
        self.mail(
            user["email"],
            "Reset your IC Maps password",
            _link_email("Reset your password", "Reset password", f"{self.app_url}/account/reset/{token}"),
        )
        return True

    def reset_password(self, token: str, password: str) -> dict:
        user_id = read_token(self.secret, "reset", token, RESET_MAX_AGE)
        return self.store.set_password(user_id, password)


def normalize_auth_error(err) -> str:
    if isinstance(err, AuthError):
        return str(err)
    if isinstance(err, str):
        return err
    return "Invalid email or password"

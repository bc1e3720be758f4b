"""Credential store operations for the viewer.

Passwords are stored as salted PBKDF2-SHA256 hashes.

"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
import sqlite3
from typing import Any, Dict, List, Optional, Tuple


DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "1234"

_PBKDF2_ROUNDS = 120_000
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{2,32}$")


def _hash_password(password: str, salt: str) -> str:
    raw = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), _PBKDF2_ROUNDS)
    return raw.hex()


def validate_username(value: str) -> Tuple[bool, str]:
    if not value or not value.strip():
        return False, "Username cannot be empty"
    if not _USERNAME_RE.match(value.strip()):
        return False, "Username must be 2-32 chars (letters/numbers/_/./-)"
    return True, ""


def list_users(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    cur = conn.execute("SELECT id, username, created_at FROM users ORDER BY username")
    return [dict(r) for r in cur.fetchall()]


def create_user(conn: sqlite3.Connection, *, username: str, password: str, replace: bool = False) -> bool:
    """Insert a user. Returns False if the username exists and `replace` is off."""

    ok, msg = validate_username(username)
    if not ok:
        raise ValueError(msg)
    if not password:
        raise ValueError("Password cannot be empty")

    salt = secrets.token_hex(16)
    pw_hash = _hash_password(password, salt)
    if replace:
        conn.execute(
            """
            INSERT INTO users (username, password_hash, salt) VALUES (?, ?, ?)
            ON CONFLICT(username) DO UPDATE SET password_hash=excluded.password_hash, salt=excluded.salt
            """,
            (username.strip(), pw_hash, salt),
        )
        return True

    cur = conn.execute(
        "INSERT OR IGNORE INTO users (username, password_hash, salt) VALUES (?, ?, ?)",
        (username.strip(), pw_hash, salt),
    )
    return cur.rowcount == 1


def verify_user(conn: sqlite3.Connection, *, username: str, password: str) -> Optional[Dict[str, Any]]:
    """Return the user row (without secrets) if the credentials match."""

    cur = conn.execute("SELECT * FROM users WHERE username=?", ((username or "").strip(),))
    r = cur.fetchone()
    if r is None:
        return None
    if not hmac.compare_digest(_hash_password(password or "", r["salt"]), r["password_hash"]):
        return None
    return {"id": r["id"], "username": r["username"]}


def ensure_default_admin(conn: sqlite3.Connection) -> bool:
    """Seed the default admin account if it does not exist yet."""

    return create_user(conn, username=DEFAULT_ADMIN_USERNAME, password=DEFAULT_ADMIN_PASSWORD)

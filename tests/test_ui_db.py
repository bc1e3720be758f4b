import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ui.database.db import db_session
from ui.database import crud


def test_default_admin_is_seeded_once(tmp_path, monkeypatch):
    monkeypatch.setenv("TIME_TABLE_DB", str(tmp_path / "timetable.db"))

    with db_session() as conn:
        assert crud.ensure_default_admin(conn) is True
        assert crud.ensure_default_admin(conn) is False
        users = crud.list_users(conn)

    assert [u["username"] for u in users] == ["admin"]


def test_verify_user_checks_password(tmp_path, monkeypatch):
    monkeypatch.setenv("TIME_TABLE_DB", str(tmp_path / "timetable.db"))

    with db_session() as conn:
        crud.create_user(conn, username="staff", password="s3cret")

    with db_session() as conn:
        user = crud.verify_user(conn, username=" staff ", password="s3cret")
        assert user == {"id": user["id"], "username": "staff"}
        assert crud.verify_user(conn, username="staff", password="wrong") is None
        assert crud.verify_user(conn, username="ghost", password="s3cret") is None

        row = conn.execute("SELECT password_hash FROM users WHERE username='staff'").fetchone()
        assert row["password_hash"] != "s3cret"


def test_replace_updates_password(tmp_path, monkeypatch):
    monkeypatch.setenv("TIME_TABLE_DB", str(tmp_path / "timetable.db"))

    with db_session() as conn:
        crud.create_user(conn, username="admin", password="1234")
        assert crud.create_user(conn, username="admin", password="new") is False
        crud.create_user(conn, username="admin", password="new", replace=True)
        assert crud.verify_user(conn, username="admin", password="new") is not None
        assert crud.verify_user(conn, username="admin", password="1234") is None


def test_invalid_username_is_rejected(tmp_path, monkeypatch):
    monkeypatch.setenv("TIME_TABLE_DB", str(tmp_path / "timetable.db"))

    with db_session() as conn:
        with pytest.raises(ValueError):
            crud.create_user(conn, username="a b", password="x")

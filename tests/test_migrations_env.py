"""Tests for the Alembic DATABASE_URL conversion."""

from __future__ import annotations

import os
import sys

import pytest
from sqlalchemy.engine import make_url

# Make migrations importable without alembic context
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from migrations.env_helpers import database_url  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("DB_PASSWORD", raising=False)


def _url(monkeypatch, raw: str):
    monkeypatch.setenv("DATABASE_URL", raw)
    return make_url(database_url())


class TestDatabaseUrl:
    def test_missing(self):
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            database_url()

    def test_libpq_tcp(self, monkeypatch):
        url = _url(monkeypatch, "dbname=hotelbook user=admin password=pw host=localhost port=5433")

        assert url.drivername == "postgresql+psycopg2"
        assert (url.username, url.password, url.host, url.port, url.database) == (
            "admin", "pw", "localhost", 5433, "hotelbook"
        )

    def test_postgres_scheme_is_normalized(self, monkeypatch):
        url = _url(monkeypatch, "postgres://u:p@db.internal:5432/bookings")

        assert url.drivername == "postgresql+psycopg2"
        assert url.host == "db.internal"
        assert url.database == "bookings"

    def test_unix_socket_goes_to_query(self, monkeypatch):
        url = _url(monkeypatch, "dbname=hotelbook user=svc password=s3cret host=/var/run/postgresql")

        assert url.host is None
        assert url.query["host"] == "/var/run/postgresql"

    def test_special_chars_survive(self, monkeypatch):
        url = _url(monkeypatch, "dbname=db user=u@domain password='p@ss w=rd' host=h")

        assert url.username == "u@domain"
        assert url.password == "p@ss w=rd"

    def test_db_password_fallback(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "from-env")

        url = _url(monkeypatch, "dbname=db user=u host=h")

        assert url.password == "from-env"

    def test_dsn_password_wins(self, monkeypatch):
        monkeypatch.setenv("DB_PASSWORD", "from-env")

        url = _url(monkeypatch, "postgresql://u:from-dsn@h/db")

        assert url.password == "from-dsn"

    def test_garbage(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "this is not = a dsn '")

        with pytest.raises(RuntimeError):
            database_url()

"""Database URL helpers for Alembic migrations.

Extracted so they can be tested without triggering alembic.context at import time.

DATABASE_URL may be a URL (``postgres://...``) or a libpq key=value DSN, the
same forms ``psycopg2.connect`` accepts at runtime. Alembic needs a
SQLAlchemy URL, so both are normalized through ``psycopg2``'s own DSN parser.
"""

from __future__ import annotations

import os

from psycopg2.extensions import parse_dsn
from sqlalchemy.engine import URL

DRIVER = "postgresql+psycopg2"


def database_url() -> str:
    """SQLAlchemy URL for DATABASE_URL.

    A missing password is taken from DB_PASSWORD; a host starting with ``/``
    is a Unix socket directory and is passed as the ``host`` query argument.

    Raises:
        RuntimeError: If DATABASE_URL is not set or cannot be parsed.
    """
    raw = os.environ.get("DATABASE_URL")
    if not raw:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if raw.startswith("postgres://"):
        raw = "postgresql://" + raw[len("postgres://"):]

    try:
        params = parse_dsn(raw)
    except Exception as exc:
        raise RuntimeError("DATABASE_URL is not a valid PostgreSQL DSN") from exc

    password = params.get("password") or os.environ.get("DB_PASSWORD") or None
    host = params.get("host")
    query: dict[str, str] = {}
    if host and host.startswith("/"):
        query["host"] = host
        host = None

    url = URL.create(
        DRIVER,
        username=params.get("user"),
        password=password,
        host=host,
        port=int(params["port"]) if params.get("port") else None,
        database=params.get("dbname"),
        query=query,
    )
    return url.render_as_string(hide_password=False)

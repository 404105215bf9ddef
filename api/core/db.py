"""
Async database access helpers (raw SQL) using asyncpg.

The app owns exactly one connection. It is opened during startup, used by the
users service for every query and closed on shutdown (see `api/main.py`).

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import asyncpg

from . import config


# Store preparation failures are explicit and separable from other runtime errors.
class StoreError(RuntimeError):
    pass


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = config.database_url()
    if not url:
        raise StoreError("DATABASE_URL is not set.")
    return _sanitize_database_url(url)


async def connect() -> asyncpg.Connection:
    try:
        return await asyncpg.connect(dsn=database_url())
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        raise StoreError(f"Failed to connect to database: {exc}") from exc


async def apply_schema(conn: asyncpg.Connection, path: Path) -> None:
    """
    Run the schema script through the connection. Must be idempotent.
    """
    try:
        script = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise StoreError(f"Failed to read schema script {path}: {exc}") from exc

    try:
        await conn.execute(script)
    except (asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
        raise StoreError(f"Failed to apply schema script {path}: {exc}") from exc


async def close(conn: asyncpg.Connection | None) -> None:
    if conn is None:
        return None
    await conn.close()


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


async def fetch_one(conn: asyncpg.Connection, sql: str, *args: Any) -> dict[str, Any] | None:
    """
    Run a query and return the first row as a dict (or None).
    """
    row = await conn.fetchrow(sql, *args)
    return _record_to_dict(row) if row is not None else None


async def fetch_all(conn: asyncpg.Connection, sql: str, *args: Any) -> list[dict[str, Any]]:
    """
    Run a query and return all rows as a list of dicts.
    """
    rows = await conn.fetch(sql, *args)
    return [_record_to_dict(r) for r in rows]

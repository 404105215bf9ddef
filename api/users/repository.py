"""
Users persistence (raw SQL).

All functions take the asyncpg connection explicitly; the users service owns it.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core import db

# Columns the store assigns itself; callers never write them.
SERVER_COLUMNS = frozenset({"id", "created_at"})


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


async def table_exists(conn: asyncpg.Connection) -> bool:
    row = await db.fetch_one(
        conn,
        """
        SELECT to_regclass('public.users') IS NOT NULL AS ok
        """,
    )
    return bool(row and row["ok"])


async def writable_columns(conn: asyncpg.Connection) -> list[str]:
    rows = await db.fetch_all(
        conn,
        """
        SELECT column_name
        FROM information_schema.columns
        WHERE table_schema = 'public'
          AND table_name = 'users'
        ORDER BY ordinal_position
        """,
    )
    return [str(r["column_name"]) for r in rows if r["column_name"] not in SERVER_COLUMNS]


async def get_user(conn: asyncpg.Connection, user_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        conn,
        """
        SELECT *
        FROM public.users
        WHERE id = $1
        """,
        user_id,
    )


async def list_users(conn: asyncpg.Connection) -> list[dict[str, Any]]:
    return await db.fetch_all(
        conn,
        """
        SELECT *
        FROM public.users
        ORDER BY id ASC
        """,
    )


async def insert_user(conn: asyncpg.Connection, fields: dict[str, Any]) -> dict[str, Any]:
    """
    Insert one row. `fields` keys must already be checked against writable_columns().
    """
    if fields:
        columns = list(fields)
        column_list = ", ".join(_quote_ident(c) for c in columns)
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        row = await db.fetch_one(
            conn,
            f"""
            INSERT INTO public.users ({column_list})
            VALUES ({placeholders})
            RETURNING *
            """,
            *(fields[c] for c in columns),
        )
    else:
        row = await db.fetch_one(
            conn,
            """
            INSERT INTO public.users DEFAULT VALUES
            RETURNING *
            """,
        )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


async def delete_user(conn: asyncpg.Connection, user_id: int) -> bool:
    row = await db.fetch_one(
        conn,
        """
        DELETE FROM public.users
        WHERE id = $1
        RETURNING id
        """,
        user_id,
    )
    return row is not None

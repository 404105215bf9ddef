from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Any

import asyncpg
import pytest
from fastapi.testclient import TestClient

from core.services import ServiceRegistry
from main import create_application
from users.service import SERVICE_NAME, UsersService

USERS_COLUMNS = ["id", "name", "email", "created_at"]

_INSERT_COLUMNS = re.compile(r"INSERT INTO public\.users \(([^)]*)\)")


class FakeConnection:
    """
    In-memory stand-in for an asyncpg connection holding `public.users`.

    It understands exactly the statements issued by `users.repository`.
    Like asyncpg, it refuses a call while another one is still in flight.
    Set `fail_with` to make every call raise that exception.
    """

    def __init__(self, *, table_exists: bool = True) -> None:
        self.table_exists = table_exists
        self.rows: dict[int, dict[str, Any]] = {}
        self.next_id = 1
        self.fail_with: BaseException | None = None
        self.executed: list[str] = []
        self.statements: list[str] = []
        self.closed = False
        self._busy = False

    async def _run(self, handler, sql: str, args: tuple[Any, ...]):
        if self._busy:
            raise asyncpg.InterfaceError("cannot perform operation: another operation is in progress")
        self._busy = True
        self.statements.append(sql)
        try:
            # Yield to the loop so overlapping callers can collide.
            await asyncio.sleep(0)
            if self.fail_with is not None:
                raise self.fail_with
            return handler(sql, args)
        finally:
            self._busy = False

    async def execute(self, sql: str, *args: Any) -> str:
        return await self._run(self._execute, sql, args)

    async def fetch(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        return await self._run(self._fetch, sql, args)

    async def fetchrow(self, sql: str, *args: Any) -> dict[str, Any] | None:
        return await self._run(self._fetchrow, sql, args)

    async def close(self) -> None:
        self.closed = True

    def _execute(self, sql: str, args: tuple[Any, ...]) -> str:
        self.executed.append(sql)
        return "OK"

    def _fetch(self, sql: str, args: tuple[Any, ...]) -> list[dict[str, Any]]:
        if "information_schema.columns" in sql:
            return [{"column_name": c} for c in USERS_COLUMNS] if self.table_exists else []
        if "FROM public.users" in sql and "ORDER BY id" in sql:
            return [dict(self.rows[k]) for k in sorted(self.rows)]
        raise AssertionError(f"Unexpected fetch: {sql}")

    def _fetchrow(self, sql: str, args: tuple[Any, ...]) -> dict[str, Any] | None:
        if "to_regclass" in sql:
            return {"ok": self.table_exists}
        if "INSERT INTO public.users" in sql:
            return self._insert(sql, args)
        if "DELETE FROM public.users" in sql:
            row = self.rows.pop(args[0], None)
            return {"id": row["id"]} if row is not None else None
        if "FROM public.users" in sql and "WHERE id = $1" in sql:
            row = self.rows.get(args[0])
            return dict(row) if row is not None else None
        raise AssertionError(f"Unexpected fetchrow: {sql}")

    def _insert(self, sql: str, args: tuple[Any, ...]) -> dict[str, Any]:
        match = _INSERT_COLUMNS.search(sql)
        columns = [c.strip().strip('"') for c in match.group(1).split(",")] if match else []
        values = dict(zip(columns, args))

        if values.get("name") is None:
            exc = asyncpg.NotNullViolationError('null value in column "name" violates not-null constraint')
            exc.column_name = "name"
            raise exc
        if not isinstance(values["name"], str):
            raise asyncpg.DataError("invalid input for query argument $1")
        email = values.get("email")
        if email is not None and any(r["email"] == email for r in self.rows.values()):
            raise asyncpg.UniqueViolationError('duplicate key value violates unique constraint "users_email_key"')

        row = {
            "id": self.next_id,
            "name": values["name"],
            "email": email,
            "created_at": values.get("created_at") or datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        self.rows[row["id"]] = row
        self.next_id += 1
        return dict(row)


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def service(conn: FakeConnection) -> UsersService:
    users_service = UsersService(conn)
    asyncio.run(users_service.init())
    return users_service


@pytest.fixture
def registry(service: UsersService) -> ServiceRegistry:
    services = ServiceRegistry()
    services.set_service(SERVICE_NAME, service)
    return services


@pytest.fixture
def client(registry: ServiceRegistry) -> TestClient:
    return TestClient(create_application(services=registry))

"""
Users service.

Owns the database connection and is the only code path that queries `users`.
Every operation returns an Outcome (see `core/results.py`); store failures are
caught here and never escape as exceptions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import asyncpg

from core import db
from core.results import Ok, Outcome, Unexpected, domain

from . import repository

logger = logging.getLogger(__name__)

SERVICE_NAME = "users"

USER_NOT_FOUND = "USER_NOT_FOUND"
UNKNOWN_FIELD = "UNKNOWN_FIELD"
INVALID_USER = "INVALID_USER"
USERS_UNAVAILABLE = "USERS_UNAVAILABLE"

# Faults raised by the database or the driver.
STORE_FAULTS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

# Faults caused by the submitted record. Driver-side encoding errors are ValueErrors.
RECORD_FAULTS = (asyncpg.IntegrityConstraintViolationError, asyncpg.DataError, ValueError)


def _not_found(user_id: int) -> Outcome:
    return domain(USER_NOT_FOUND, f"User {user_id} not found.")


class UsersService:
    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn
        # asyncpg runs one operation at a time per connection; requests queue here.
        self._lock = asyncio.Lock()
        self._columns: frozenset[str] = frozenset()

    @property
    def columns(self) -> frozenset[str]:
        return self._columns

    async def init(self) -> None:
        """
        Check that the users table is in place and load its writable columns.
        """
        try:
            async with self._lock:
                exists = await repository.table_exists(self._conn)
                columns = await repository.writable_columns(self._conn) if exists else []
        except STORE_FAULTS as exc:
            raise db.StoreError(f"Failed to inspect table `users`: {exc}") from exc
        if not exists:
            raise db.StoreError("Table `users` does not exist.")

        self._columns = frozenset(columns)
        logger.info("users_service_ready columns=%s", ",".join(columns))

    async def get_user(self, user_id: int) -> Outcome:
        try:
            async with self._lock:
                row = await repository.get_user(self._conn, user_id)
        except STORE_FAULTS as exc:
            return Unexpected(exc)

        if row is None:
            return _not_found(user_id)
        return Ok(row)

    async def get_all_users(self) -> Outcome:
        try:
            async with self._lock:
                rows = await repository.list_users(self._conn)
        except STORE_FAULTS:
            # Nothing the caller sent can cause this; report it without internals.
            logger.exception("list_users_failed")
            return domain(USERS_UNAVAILABLE, "Unable to fetch users.")
        return Ok(rows)

    async def create_user(self, record: dict[str, Any]) -> Outcome:
        unknown = sorted(k for k in record if k not in self._columns)
        if unknown:
            return domain(UNKNOWN_FIELD, f"Unknown field(s): {', '.join(unknown)}.")

        try:
            async with self._lock:
                row = await repository.insert_user(self._conn, record)
        except RECORD_FAULTS as exc:
            return domain(INVALID_USER, _describe_record_fault(exc))
        except STORE_FAULTS as exc:
            return Unexpected(exc)
        return Ok(row)

    async def delete_user(self, user_id: int) -> Outcome:
        try:
            async with self._lock:
                deleted = await repository.delete_user(self._conn, user_id)
        except STORE_FAULTS as exc:
            return Unexpected(exc)

        if not deleted:
            return _not_found(user_id)
        return Ok(None)


def _describe_record_fault(exc: Exception) -> str:
    if isinstance(exc, asyncpg.NotNullViolationError):
        column = getattr(exc, "column_name", None)
        return f"Field '{column}' is required." if column else "A required field is missing."
    if isinstance(exc, asyncpg.UniqueViolationError):
        return "A user with the same unique field already exists."
    if isinstance(exc, asyncpg.IntegrityConstraintViolationError):
        return "User violates a table constraint."
    return "User contains a value of the wrong type."

"""SQLite Unit of Work implementation."""

import sqlite3
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

import aiosqlite

from permctl.domain.exceptions import StorageError
from permctl.infrastructure.persistence.sqlite.audit_log_repository import (
    SqliteAuditLogRepository,
)
from permctl.infrastructure.persistence.sqlite.connection import open_connection
from permctl.infrastructure.persistence.sqlite.permission_store import (
    SqlitePermissionStore,
)


class SqliteUnitOfWork:
    """SQLite Unit of Work - one connection, one transaction."""

    def __init__(
        self,
        db_path: Path,
        busy_timeout: float = 5.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._db_path = db_path
        self._busy_timeout = busy_timeout
        self._clock = clock
        self._conn: aiosqlite.Connection | None = None

    async def __aenter__(self) -> "SqliteUnitOfWork":
        self._conn = await open_connection(self._db_path, self._busy_timeout)
        self._audit = SqliteAuditLogRepository(self._conn, self._clock)
        self._permissions = SqlitePermissionStore(self._conn, self._audit, self._clock)
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        if not self._conn:
            return
        try:
            if exc_type:
                await self._conn.rollback()
        finally:
            await self._conn.close()
            self._conn = None

    @property
    def permissions(self) -> SqlitePermissionStore:
        return self._permissions

    @property
    def audit(self) -> SqliteAuditLogRepository:
        return self._audit

    async def commit(self) -> None:
        if self._conn:
            await self._conn.commit()

    async def rollback(self) -> None:
        if self._conn:
            await self._conn.rollback()


def create_uow_factory(
    db_path: Path,
    busy_timeout: float = 5.0,
    clock: Callable[[], datetime] | None = None,
) -> object:
    """Create UnitOfWork factory (async context manager).

    sqlite3 errors, including busy-timeout expiry, surface as StorageError.
    """

    @asynccontextmanager
    async def factory() -> AsyncIterator[SqliteUnitOfWork]:
        try:
            async with SqliteUnitOfWork(db_path, busy_timeout, clock) as uow:
                try:
                    yield uow
                    await uow.commit()
                except BaseException:
                    await uow.rollback()
                    raise
        except sqlite3.Error as exc:
            raise StorageError(f"Ledger operation on {db_path} failed: {exc}") from exc

    return factory

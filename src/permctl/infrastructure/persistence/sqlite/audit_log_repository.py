"""SQLite audit log repository."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from permctl.domain.entities import AuditLogEntry
from permctl.domain.value_objects import AuditAction


class SqliteAuditLogRepository:
    """Append-only audit trail. Triggers reject UPDATE and DELETE."""

    def __init__(
        self,
        conn: aiosqlite.Connection,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._conn = conn
        self._clock = clock or (lambda: datetime.now(UTC))

    async def append(
        self,
        username: str,
        command: str,
        action: AuditAction,
        details: str | None = None,
    ) -> int:
        """Insert one entry in the caller's transaction."""
        cur = await self._conn.execute(
            "INSERT INTO audit_log (timestamp, username, command, action, details) "
            "VALUES (?, ?, ?, ?, ?)",
            (self._clock().timestamp(), username, command, action.value, details),
        )
        return int(cur.lastrowid)

    async def list_entries(
        self,
        *,
        username: str | None = None,
        command: str | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        """List entries newest first, optionally filtered."""
        clauses: list[str] = []
        params: list[Any] = []
        if username is not None:
            clauses.append("username = ?")
            params.append(username)
        if command is not None:
            clauses.append("command = ?")
            params.append(command)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(int(limit))
        cur = await self._conn.execute(
            "SELECT id, timestamp, username, command, action, details "
            f"FROM audit_log {where} ORDER BY id DESC LIMIT ?",
            tuple(params),
        )
        rows = await cur.fetchall()
        return [
            AuditLogEntry(
                id=int(r["id"]),
                timestamp=datetime.fromtimestamp(r["timestamp"], UTC),
                username=r["username"],
                command=r["command"],
                action=AuditAction(r["action"]),
                details=r["details"],
            )
            for r in rows
        ]

"""SQLite permission store - the grant ledger."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

import aiosqlite

from permctl.domain.entities import PermissionGrant
from permctl.domain.exceptions import ConcurrentUserLimitReached
from permctl.domain.value_objects import AuditAction, SystemActor
from permctl.infrastructure.persistence.sqlite.audit_log_repository import (
    SqliteAuditLogRepository,
)

logger = logging.getLogger(__name__)

_GRANT_COLUMNS = (
    "id, username, command, granted_at, expires_at, granted_by, "
    "last_used, revoked, revoked_at, revoked_by"
)


class SqlitePermissionStore:
    """Grant ledger on SQLite.

    Rows are never deleted: revocation, expiry and supersession only flip
    revoked/revoked_at/revoked_by. A partial unique index allows at most one
    unrevoked row per (username, command).
    """

    def __init__(
        self,
        conn: aiosqlite.Connection,
        audit: SqliteAuditLogRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._conn = conn
        self._audit = audit
        self._clock = clock or (lambda: datetime.now(UTC))

    async def _begin_write(self) -> None:
        # Take the write lock up front so a read-then-write never has to upgrade.
        if not self._conn.in_transaction:
            await self._conn.execute("BEGIN IMMEDIATE")

    async def grant(
        self,
        username: str,
        command: str,
        expires_at: datetime,
        granted_by: str,
        *,
        max_concurrent_users: int | None = None,
    ) -> int:
        """Insert an active grant, superseding any unrevoked row for the pair."""
        now = self._clock()
        now_ts = now.timestamp()
        await self._begin_write()

        if max_concurrent_users is not None:
            cur = await self._conn.execute(
                "SELECT COUNT(*) FROM permission_grants "
                "WHERE command = ? AND username != ? AND revoked = 0 AND expires_at > ?",
                (command, username, now_ts),
            )
            holders = (await cur.fetchone())[0]
            if holders >= max_concurrent_users:
                raise ConcurrentUserLimitReached(command, max_concurrent_users)

        cur = await self._conn.execute(
            "SELECT id, expires_at FROM permission_grants "
            "WHERE username = ? AND command = ? AND revoked = 0",
            (username, command),
        )
        superseded: list[int] = []
        for row in await cur.fetchall():
            actor = SystemActor.SUPERSEDE if row["expires_at"] > now_ts else SystemActor.CLEANUP
            await self._conn.execute(
                "UPDATE permission_grants SET revoked = 1, revoked_at = ?, revoked_by = ? "
                "WHERE id = ?",
                (now_ts, actor.value, row["id"]),
            )
            if actor is SystemActor.CLEANUP:
                # sweep_expired never sees this row again; record its end here.
                await self._audit.append(
                    username,
                    command,
                    AuditAction.REVOKE,
                    _expired_details(row["id"]),
                )
            superseded.append(int(row["id"]))

        cur = await self._conn.execute(
            "INSERT INTO permission_grants "
            "(username, command, granted_at, expires_at, granted_by, revoked) "
            "VALUES (?, ?, ?, ?, ?, 0)",
            (username, command, now_ts, expires_at.timestamp(), granted_by),
        )
        grant_id = int(cur.lastrowid)

        details = f"Granted by {granted_by} until {expires_at.isoformat()}"
        if superseded:
            details += f"; supersedes grant {', '.join(f'#{i}' for i in superseded)}"
        await self._audit.append(username, command, AuditAction.GRANT, details)

        logger.info(
            "Granted permission: id=%s user=%s command=%s expires=%s",
            grant_id,
            username,
            command,
            expires_at.isoformat(),
        )
        return grant_id

    async def revoke(self, username: str, command: str, revoked_by: str) -> bool:
        """Revoke the active grant for the pair. False if there was none."""
        now_ts = self._clock().timestamp()
        await self._begin_write()
        cur = await self._conn.execute(
            "SELECT id FROM permission_grants "
            "WHERE username = ? AND command = ? AND revoked = 0 AND expires_at > ?",
            (username, command, now_ts),
        )
        row = await cur.fetchone()
        if not row:
            return False

        await self._conn.execute(
            "UPDATE permission_grants SET revoked = 1, revoked_at = ?, revoked_by = ? "
            "WHERE id = ?",
            (now_ts, revoked_by, row["id"]),
        )
        await self._audit.append(
            username,
            command,
            AuditAction.REVOKE,
            f"Revoked by {revoked_by} (grant #{row['id']})",
        )
        logger.info("Revoked permission: id=%s user=%s command=%s", row["id"], username, command)
        return True

    async def check_active(self, username: str, command: str) -> bool:
        cur = await self._conn.execute(
            "SELECT 1 FROM permission_grants "
            "WHERE username = ? AND command = ? AND revoked = 0 AND expires_at > ? LIMIT 1",
            (username, command, self._clock().timestamp()),
        )
        return await cur.fetchone() is not None

    async def record_usage(self, username: str, command: str, *, audit: bool = True) -> bool:
        """Touch last_used on the active grant and optionally audit the use."""
        now_ts = self._clock().timestamp()
        await self._begin_write()
        cur = await self._conn.execute(
            "UPDATE permission_grants SET last_used = ? "
            "WHERE username = ? AND command = ? AND revoked = 0 AND expires_at > ?",
            (now_ts, username, command, now_ts),
        )
        found = cur.rowcount > 0
        if audit:
            await self._audit.append(
                username,
                command,
                AuditAction.USE,
                "Used under active grant" if found else "No active grant",
            )
        return found

    async def list_active_for_user(self, username: str) -> list[PermissionGrant]:
        """Active grants of one user, latest expiry first."""
        cur = await self._conn.execute(
            f"SELECT {_GRANT_COLUMNS} FROM permission_grants "
            "WHERE username = ? AND revoked = 0 AND expires_at > ? "
            "ORDER BY expires_at DESC",
            (username, self._clock().timestamp()),
        )
        return [_row_to_grant(r) for r in await cur.fetchall()]

    async def list_all_active(self) -> list[PermissionGrant]:
        """All active grants ordered by (username, command). Renderer input."""
        cur = await self._conn.execute(
            f"SELECT {_GRANT_COLUMNS} FROM permission_grants "
            "WHERE revoked = 0 AND expires_at > ? "
            "ORDER BY username, command",
            (self._clock().timestamp(),),
        )
        return [_row_to_grant(r) for r in await cur.fetchall()]

    async def sweep_expired(self) -> int:
        """Revoke every unrevoked, expired grant as the cleanup actor."""
        now_ts = self._clock().timestamp()
        await self._begin_write()
        cur = await self._conn.execute(
            "SELECT id, username, command FROM permission_grants "
            "WHERE revoked = 0 AND expires_at <= ? ORDER BY id",
            (now_ts,),
        )
        expired = await cur.fetchall()
        if not expired:
            return 0

        await self._conn.execute(
            "UPDATE permission_grants SET revoked = 1, revoked_at = ?, revoked_by = ? "
            "WHERE revoked = 0 AND expires_at <= ?",
            (now_ts, SystemActor.CLEANUP.value, now_ts),
        )
        for row in expired:
            await self._audit.append(
                row["username"],
                row["command"],
                AuditAction.REVOKE,
                _expired_details(row["id"]),
            )
        return len(expired)


def _row_to_grant(r) -> PermissionGrant:
    return PermissionGrant(
        id=int(r["id"]),
        username=r["username"],
        command=r["command"],
        granted_at=_from_ts(r["granted_at"]),
        expires_at=_from_ts(r["expires_at"]),
        granted_by=r["granted_by"],
        last_used=_from_ts(r["last_used"]) if r["last_used"] is not None else None,
        revoked=bool(r["revoked"]),
        revoked_at=_from_ts(r["revoked_at"]) if r["revoked_at"] is not None else None,
        revoked_by=r["revoked_by"],
    )


def _expired_details(grant_id: int) -> str:
    return f"Expired; revoked by {SystemActor.CLEANUP.value} (grant #{grant_id})"


def _from_ts(value: float) -> datetime:
    return datetime.fromtimestamp(value, UTC)

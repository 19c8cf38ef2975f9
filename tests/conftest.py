"""Pytest fixtures for permctl tests."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from permctl.config import CommandConfig, Settings
from permctl.domain.entities import AuditLogEntry, CommandPolicy, PermissionGrant
from permctl.domain.exceptions import (
    ConcurrentUserLimitReached,
    SynchronizationError,
    SystemLookupError,
)
from permctl.domain.value_objects import AuditAction, SystemActor
from permctl.infrastructure.persistence.sqlite.connection import upgrade_database
from permctl.infrastructure.persistence.sqlite.unit_of_work import create_uow_factory

DOCKER = "/usr/bin/docker"
SYSTEMCTL = "/usr/bin/systemctl"


class FakeClock:
    """Settable clock. Starts at a fixed instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# --- Fake repositories ---


class FakeAuditLogRepository:
    """In-memory append-only audit log."""

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.entries: list[AuditLogEntry] = []

    async def append(
        self,
        username: str,
        command: str,
        action: AuditAction,
        details: str | None = None,
    ) -> int:
        entry = AuditLogEntry(
            id=len(self.entries) + 1,
            timestamp=self._clock(),
            username=username,
            command=command,
            action=action,
            details=details,
        )
        self.entries.append(entry)
        return entry.id

    async def list_entries(
        self,
        *,
        username: str | None = None,
        command: str | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        items = [
            e
            for e in reversed(self.entries)
            if (username is None or e.username == username)
            and (command is None or e.command == command)
        ]
        return items[:limit]


class FakePermissionStore:
    """In-memory grant ledger with append + supersede semantics."""

    def __init__(self, audit: FakeAuditLogRepository, clock: FakeClock) -> None:
        self._audit = audit
        self._clock = clock
        self.grants: list[PermissionGrant] = []

    def _active(self) -> list[PermissionGrant]:
        now = self._clock()
        return [g for g in self.grants if g.is_active(now)]

    async def grant(
        self,
        username: str,
        command: str,
        expires_at: datetime,
        granted_by: str,
        *,
        max_concurrent_users: int | None = None,
    ) -> int:
        now = self._clock()
        if max_concurrent_users is not None:
            holders = [g for g in self._active() if g.command == command and g.username != username]
            if len(holders) >= max_concurrent_users:
                raise ConcurrentUserLimitReached(command, max_concurrent_users)
        for g in self.grants:
            if g.username == username and g.command == command and not g.revoked:
                g.revoked = True
                g.revoked_at = now
                g.revoked_by = SystemActor.SUPERSEDE if g.expires_at > now else SystemActor.CLEANUP
                if g.revoked_by is SystemActor.CLEANUP:
                    await self._audit.append(username, command, AuditAction.REVOKE, "Expired")
        grant = PermissionGrant(
            id=len(self.grants) + 1,
            username=username,
            command=command,
            granted_at=now,
            expires_at=expires_at,
            granted_by=granted_by,
        )
        self.grants.append(grant)
        await self._audit.append(username, command, AuditAction.GRANT, f"Granted by {granted_by}")
        return grant.id

    async def revoke(self, username: str, command: str, revoked_by: str) -> bool:
        for g in self._active():
            if g.username == username and g.command == command:
                g.revoked = True
                g.revoked_at = self._clock()
                g.revoked_by = revoked_by
                await self._audit.append(
                    username, command, AuditAction.REVOKE, f"Revoked by {revoked_by}"
                )
                return True
        return False

    async def check_active(self, username: str, command: str) -> bool:
        return any(g.username == username and g.command == command for g in self._active())

    async def record_usage(self, username: str, command: str, *, audit: bool = True) -> bool:
        found = False
        for g in self._active():
            if g.username == username and g.command == command:
                g.last_used = self._clock()
                found = True
        if audit:
            await self._audit.append(username, command, AuditAction.USE)
        return found

    async def list_active_for_user(self, username: str) -> list[PermissionGrant]:
        items = [g for g in self._active() if g.username == username]
        return sorted(items, key=lambda g: g.expires_at, reverse=True)

    async def list_all_active(self) -> list[PermissionGrant]:
        return sorted(self._active(), key=lambda g: (g.username, g.command))

    async def sweep_expired(self) -> int:
        now = self._clock()
        count = 0
        for g in self.grants:
            if not g.revoked and g.expires_at <= now:
                g.revoked = True
                g.revoked_at = now
                g.revoked_by = SystemActor.CLEANUP
                await self._audit.append(g.username, g.command, AuditAction.REVOKE, "Expired")
                count += 1
        return count


class FakeUnitOfWork:
    """In-memory Unit of Work sharing state across transactions."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock or FakeClock()
        self._audit = FakeAuditLogRepository(self.clock)
        self._permissions = FakePermissionStore(self._audit, self.clock)
        self.commits = 0

    @property
    def permissions(self) -> FakePermissionStore:
        return self._permissions

    @property
    def audit(self) -> FakeAuditLogRepository:
        return self._audit

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


def make_uow_factory(uow: FakeUnitOfWork):
    """Async context manager factory yielding the same fake UoW each time."""

    @asynccontextmanager
    async def factory():
        yield uow
        await uow.commit()

    return factory


# --- Fake collaborators ---


class FakeIdentityOracle:
    """Identity oracle over a static user -> groups table."""

    def __init__(self, users: dict[str, set[str]] | None = None) -> None:
        self.users = users if users is not None else {}
        self.fail_with: SystemLookupError | None = None
        self.calls: list[tuple[str, ...]] = []

    async def user_exists(self, username: str) -> bool:
        self.calls.append(("user_exists", username))
        if self.fail_with:
            raise self.fail_with
        return username in self.users

    async def user_in_group(self, username: str, group: str) -> bool:
        self.calls.append(("user_in_group", username, group))
        if self.fail_with:
            raise self.fail_with
        return group in self.users.get(username, set())


class FakeSynchronizer:
    """Records rewrites; can be told to fail."""

    def __init__(self, uow: FakeUnitOfWork | None = None) -> None:
        self._uow = uow
        self.rewrites = 0
        self.fail = False
        self.snapshots: list[list[tuple[str, str]]] = []

    async def rewrite(self) -> int:
        if self.fail:
            raise SynchronizationError(Path("/etc/sudoers.d/permctl"), "disk full")
        self.rewrites += 1
        grants = await self._uow.permissions.list_all_active() if self._uow else []
        self.snapshots.append([(g.username, g.command) for g in grants])
        return len(grants)

    async def is_in_sync(self) -> bool:
        return not self.fail


# --- Fixtures ---


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def policies() -> dict[str, CommandPolicy]:
    return {
        DOCKER: CommandPolicy(
            command=DOCKER,
            max_duration=timedelta(minutes=480),
            description="Docker command access",
            required_groups=frozenset({"docker"}),
            audit_usage=True,
            max_concurrent_users=2,
        ),
        SYSTEMCTL: CommandPolicy(
            command=SYSTEMCTL,
            max_duration=timedelta(minutes=60),
            description="Service management",
        ),
    }


@pytest.fixture
def identity() -> FakeIdentityOracle:
    return FakeIdentityOracle(
        {
            "alice": {"alice", "docker"},
            "bob": {"bob", "docker"},
            "carol": {"carol", "docker"},
            "dave": {"dave"},
        }
    )


@pytest.fixture
def fake_uow(clock: FakeClock) -> FakeUnitOfWork:
    return FakeUnitOfWork(clock)


@pytest.fixture
def fake_synchronizer(fake_uow: FakeUnitOfWork) -> FakeSynchronizer:
    return FakeSynchronizer(fake_uow)


# --- Real ledger and policy file under tmp_path ---


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "lib" / "permissions.db"
    upgrade_database(path)
    return path


@pytest.fixture
def sqlite_uow_factory(db_path: Path, clock: FakeClock):
    return create_uow_factory(db_path, busy_timeout=1.0, clock=clock)


@pytest.fixture
def sudoers_path(tmp_path: Path) -> Path:
    directory = tmp_path / "sudoers.d"
    directory.mkdir()
    return directory / "permctl"


@pytest.fixture
def settings(tmp_path: Path, sudoers_path: Path) -> Settings:
    return Settings(
        allowed_commands={
            DOCKER: CommandConfig(
                description="Docker command access",
                max_duration=480,
                required_groups=["docker"],
                audit_usage=True,
                max_concurrent_users=2,
            ),
            SYSTEMCTL: CommandConfig(description="Service management", max_duration=60),
        },
        sudoers_path=sudoers_path,
        db_path=tmp_path / "lib" / "permissions.db",
        log_path=None,
        visudo_path=None,
        db_busy_timeout=1.0,
        sync_lock_timeout=1.0,
    )

"""Integration tests for the SQLite ledger."""

import sqlite3
from datetime import timedelta

import pytest

from permctl.domain.exceptions import ConcurrentUserLimitReached, StorageError
from permctl.domain.value_objects import AuditAction, SystemActor
from permctl.infrastructure.persistence.sqlite.unit_of_work import create_uow_factory

from tests.conftest import DOCKER, SYSTEMCTL


def _rows(db_path, sql, params=()):
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        return conn.execute(sql, params).fetchall()
    finally:
        conn.close()


async def _grant(factory, clock, username, command, minutes=60, **kwargs) -> int:
    async with factory() as uow:
        return await uow.permissions.grant(
            username, command, clock() + timedelta(minutes=minutes), "admin", **kwargs
        )


@pytest.mark.asyncio
async def test_grant_is_active_and_audited(sqlite_uow_factory, clock) -> None:
    grant_id = await _grant(sqlite_uow_factory, clock, "alice", DOCKER)

    async with sqlite_uow_factory() as uow:
        assert await uow.permissions.check_active("alice", DOCKER)
        assert not await uow.permissions.check_active("alice", SYSTEMCTL)
        entries = await uow.audit.list_entries()

    assert grant_id == 1
    assert [(e.action, e.username, e.command) for e in entries] == [
        (AuditAction.GRANT, "alice", DOCKER)
    ]
    assert entries[0].details.startswith("Granted by admin until ")


@pytest.mark.asyncio
async def test_grant_twice_supersedes(sqlite_uow_factory, clock, db_path) -> None:
    first = await _grant(sqlite_uow_factory, clock, "alice", DOCKER, minutes=60)
    clock.advance(minutes=1)
    second = await _grant(sqlite_uow_factory, clock, "alice", DOCKER, minutes=120)

    async with sqlite_uow_factory() as uow:
        active = await uow.permissions.list_all_active()
        latest = (await uow.audit.list_entries(limit=1))[0]

    assert [g.id for g in active] == [second]
    assert active[0].expires_at == clock() + timedelta(minutes=120)
    old = _rows(db_path, "SELECT revoked, revoked_by FROM permission_grants WHERE id = ?", (first,))
    assert old[0]["revoked"] == 1
    assert old[0]["revoked_by"] == SystemActor.SUPERSEDE.value
    assert f"supersedes grant #{first}" in latest.details


@pytest.mark.asyncio
async def test_grant_over_expired_row_attributes_cleanup(sqlite_uow_factory, clock, db_path) -> None:
    first = await _grant(sqlite_uow_factory, clock, "alice", DOCKER, minutes=5)
    clock.advance(minutes=10)
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER, minutes=5)

    old = _rows(db_path, "SELECT revoked_by FROM permission_grants WHERE id = ?", (first,))
    assert old[0]["revoked_by"] == SystemActor.CLEANUP.value

    async with sqlite_uow_factory() as uow:
        assert await uow.permissions.sweep_expired() == 0
        entries = await uow.audit.list_entries()

    assert [(e.action, e.details) for e in entries][:2] == [
        (AuditAction.GRANT, entries[0].details),
        (AuditAction.REVOKE, f"Expired; revoked by system_cleanup (grant #{first})"),
    ]
    assert f"supersedes grant #{first}" in entries[0].details


@pytest.mark.asyncio
async def test_revoke(sqlite_uow_factory, clock, db_path) -> None:
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER)

    async with sqlite_uow_factory() as uow:
        assert await uow.permissions.revoke("alice", DOCKER, "admin") is True
    async with sqlite_uow_factory() as uow:
        assert not await uow.permissions.check_active("alice", DOCKER)
        entries = await uow.audit.list_entries()

    assert entries[0].action is AuditAction.REVOKE
    row = _rows(db_path, "SELECT revoked_at, revoked_by FROM permission_grants")[0]
    assert row["revoked_by"] == "admin"
    assert row["revoked_at"] == clock().timestamp()


@pytest.mark.asyncio
async def test_revoke_without_grant_writes_nothing(sqlite_uow_factory, db_path) -> None:
    async with sqlite_uow_factory() as uow:
        assert await uow.permissions.revoke("alice", DOCKER, "admin") is False

    assert _rows(db_path, "SELECT COUNT(*) AS n FROM audit_log")[0]["n"] == 0


@pytest.mark.asyncio
async def test_revoke_ignores_expired_grant(sqlite_uow_factory, clock) -> None:
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER, minutes=5)
    clock.advance(minutes=6)

    async with sqlite_uow_factory() as uow:
        assert await uow.permissions.revoke("alice", DOCKER, "admin") is False


@pytest.mark.asyncio
async def test_record_usage(sqlite_uow_factory, clock) -> None:
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER)
    clock.advance(minutes=3)

    async with sqlite_uow_factory() as uow:
        assert await uow.permissions.record_usage("alice", DOCKER) is True
        assert await uow.permissions.record_usage("bob", DOCKER, audit=False) is False
        assert await uow.permissions.record_usage("carol", DOCKER) is False
    async with sqlite_uow_factory() as uow:
        grant = (await uow.permissions.list_active_for_user("alice"))[0]
        uses = await uow.audit.list_entries(command=DOCKER)

    assert grant.last_used == clock()
    assert [(e.username, e.action, e.details) for e in uses[:2]] == [
        ("carol", AuditAction.USE, "No active grant"),
        ("alice", AuditAction.USE, "Used under active grant"),
    ]


@pytest.mark.asyncio
async def test_list_orderings(sqlite_uow_factory, clock) -> None:
    await _grant(sqlite_uow_factory, clock, "bob", DOCKER, minutes=60)
    await _grant(sqlite_uow_factory, clock, "alice", SYSTEMCTL, minutes=10)
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER, minutes=30)

    async with sqlite_uow_factory() as uow:
        everyone = await uow.permissions.list_all_active()
        alice = await uow.permissions.list_active_for_user("alice")

    assert [(g.username, g.command) for g in everyone] == [
        ("alice", DOCKER),
        ("alice", SYSTEMCTL),
        ("bob", DOCKER),
    ]
    assert [g.command for g in alice] == [DOCKER, SYSTEMCTL]


@pytest.mark.asyncio
async def test_sweep_expired(sqlite_uow_factory, clock, db_path) -> None:
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER, minutes=5)
    await _grant(sqlite_uow_factory, clock, "bob", DOCKER, minutes=60)
    clock.advance(minutes=5)

    async with sqlite_uow_factory() as uow:
        assert await uow.permissions.sweep_expired() == 1
    async with sqlite_uow_factory() as uow:
        active = await uow.permissions.list_all_active()
        assert await uow.permissions.sweep_expired() == 0
        last = (await uow.audit.list_entries(limit=1))[0]

    assert [g.username for g in active] == ["bob"]
    row = _rows(db_path, "SELECT revoked, revoked_by FROM permission_grants WHERE username = 'alice'")
    assert row[0]["revoked"] == 1
    assert row[0]["revoked_by"] == SystemActor.CLEANUP.value
    assert (last.username, last.action) == ("alice", AuditAction.REVOKE)


@pytest.mark.asyncio
async def test_concurrent_limit_writes_nothing(sqlite_uow_factory, clock, db_path) -> None:
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER, max_concurrent_users=1)

    with pytest.raises(ConcurrentUserLimitReached):
        await _grant(sqlite_uow_factory, clock, "bob", DOCKER, max_concurrent_users=1)

    assert _rows(db_path, "SELECT COUNT(*) AS n FROM permission_grants")[0]["n"] == 1
    assert _rows(db_path, "SELECT COUNT(*) AS n FROM audit_log")[0]["n"] == 1


@pytest.mark.asyncio
async def test_failed_unit_of_work_rolls_back(sqlite_uow_factory, clock, db_path) -> None:
    with pytest.raises(RuntimeError):
        async with sqlite_uow_factory() as uow:
            await uow.permissions.grant("alice", DOCKER, clock() + timedelta(hours=1), "admin")
            raise RuntimeError("boom")

    assert _rows(db_path, "SELECT COUNT(*) AS n FROM permission_grants")[0]["n"] == 0
    assert _rows(db_path, "SELECT COUNT(*) AS n FROM audit_log")[0]["n"] == 0


@pytest.mark.asyncio
async def test_audit_filters_and_limit(sqlite_uow_factory, clock) -> None:
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER)
    await _grant(sqlite_uow_factory, clock, "alice", SYSTEMCTL)
    await _grant(sqlite_uow_factory, clock, "bob", DOCKER)

    async with sqlite_uow_factory() as uow:
        by_user = await uow.audit.list_entries(username="alice")
        by_both = await uow.audit.list_entries(username="alice", command=DOCKER)
        limited = await uow.audit.list_entries(limit=2)

    assert [e.command for e in by_user] == [SYSTEMCTL, DOCKER]
    assert len(by_both) == 1
    assert [e.username for e in limited] == ["bob", "alice"]


@pytest.mark.parametrize(
    "statement",
    [
        "UPDATE audit_log SET details = 'tampered'",
        "DELETE FROM audit_log",
        "DELETE FROM permission_grants",
    ],
)
@pytest.mark.asyncio
async def test_history_is_append_only(sqlite_uow_factory, clock, db_path, statement) -> None:
    await _grant(sqlite_uow_factory, clock, "alice", DOCKER)

    conn = sqlite3.connect(db_path)
    try:
        with pytest.raises(sqlite3.DatabaseError, match="not allowed"):
            conn.execute(statement)
    finally:
        conn.close()


def test_unrevoked_pair_is_unique(db_path) -> None:
    conn = sqlite3.connect(db_path)
    insert = (
        "INSERT INTO permission_grants (username, command, granted_at, expires_at, granted_by) "
        "VALUES ('alice', '/usr/bin/docker', 0, 1, 'admin')"
    )
    try:
        conn.execute(insert)
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(insert)
    finally:
        conn.close()


@pytest.mark.asyncio
async def test_busy_ledger_raises_storage_error(db_path, clock) -> None:
    factory = create_uow_factory(db_path, busy_timeout=0.1, clock=clock)
    blocker = sqlite3.connect(db_path, isolation_level=None)
    blocker.execute("BEGIN IMMEDIATE")
    try:
        with pytest.raises(StorageError):
            await _grant(factory, clock, "alice", DOCKER)
    finally:
        blocker.rollback()
        blocker.close()

"""Audit log repository port."""

from typing import Protocol

from permctl.domain.entities import AuditLogEntry
from permctl.domain.value_objects import AuditAction


class AuditLogRepository(Protocol):
    """Port for the append-only audit trail."""

    async def append(
        self,
        username: str,
        command: str,
        action: AuditAction,
        details: str | None = None,
    ) -> int: ...

    async def list_entries(
        self,
        *,
        username: str | None = None,
        command: str | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]: ...

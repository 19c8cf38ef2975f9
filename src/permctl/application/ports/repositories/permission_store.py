"""Permission store port - the grant ledger."""

from datetime import datetime
from typing import Protocol

from permctl.domain.entities import PermissionGrant


class PermissionStore(Protocol):
    """Port for grant persistence. Mutations append to the audit trail."""

    async def grant(
        self,
        username: str,
        command: str,
        expires_at: datetime,
        granted_by: str,
        *,
        max_concurrent_users: int | None = None,
    ) -> int: ...

    async def revoke(self, username: str, command: str, revoked_by: str) -> bool: ...

    async def check_active(self, username: str, command: str) -> bool: ...

    async def record_usage(self, username: str, command: str, *, audit: bool = True) -> bool: ...

    async def list_active_for_user(self, username: str) -> list[PermissionGrant]: ...

    async def list_all_active(self) -> list[PermissionGrant]: ...

    async def sweep_expired(self) -> int: ...

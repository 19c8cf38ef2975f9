"""Permission manager - single entry point for ledger mutations."""

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta

from permctl.application.dto.permission_dto import GrantOutcome
from permctl.application.ports import PolicySynchronizer
from permctl.application.services.access_validator import AccessValidator
from permctl.application.use_cases.permission.cleanup_expired import CleanupExpiredUseCase
from permctl.application.use_cases.permission.grant_permission import GrantPermissionUseCase
from permctl.application.use_cases.permission.list_audit_log import ListAuditLogUseCase
from permctl.application.use_cases.permission.list_permissions import (
    CheckPermissionUseCase,
    ListPermissionsUseCase,
)
from permctl.application.use_cases.permission.record_usage import RecordUsageUseCase
from permctl.application.use_cases.permission.revoke_permission import RevokePermissionUseCase
from permctl.application.use_cases.permission.synchronize_policy import (
    SynchronizePolicyUseCase,
)
from permctl.domain.entities import AuditLogEntry, CommandPolicy, PermissionGrant


class PermissionManager:
    """Orchestrates validator -> ledger -> policy file for every operation."""

    def __init__(
        self,
        unit_of_work_factory: type,
        policies: Mapping[str, CommandPolicy],
        validator: AccessValidator,
        synchronizer: PolicySynchronizer,
        *,
        enforce_concurrent_limit: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._policies = policies
        self._synchronizer = synchronizer
        self._grant = GrantPermissionUseCase(
            unit_of_work_factory=unit_of_work_factory,
            validator=validator,
            synchronizer=synchronizer,
            enforce_concurrent_limit=enforce_concurrent_limit,
            clock=clock,
        )
        self._revoke = RevokePermissionUseCase(
            unit_of_work_factory=unit_of_work_factory,
            synchronizer=synchronizer,
        )
        self._cleanup = CleanupExpiredUseCase(
            unit_of_work_factory=unit_of_work_factory,
            synchronizer=synchronizer,
        )
        self._record_usage = RecordUsageUseCase(
            unit_of_work_factory=unit_of_work_factory,
            policies=policies,
        )
        self._list = ListPermissionsUseCase(unit_of_work_factory)
        self._check = CheckPermissionUseCase(unit_of_work_factory)
        self._audit = ListAuditLogUseCase(unit_of_work_factory)
        self._sync = SynchronizePolicyUseCase(synchronizer)

    @property
    def policies(self) -> Mapping[str, CommandPolicy]:
        return self._policies

    async def grant(
        self,
        username: str,
        command: str,
        duration: timedelta,
        granted_by: str,
    ) -> GrantOutcome:
        return await self._grant.execute(username, command, duration, granted_by)

    async def revoke(self, username: str, command: str, revoked_by: str) -> bool:
        return await self._revoke.execute(username, command, revoked_by)

    async def cleanup(self) -> int:
        return await self._cleanup.execute()

    async def record_usage(self, username: str, command: str) -> bool:
        return await self._record_usage.execute(username, command)

    async def check_active(self, username: str, command: str) -> bool:
        return await self._check.execute(username, command)

    async def list_active(self, username: str | None = None) -> list[PermissionGrant]:
        return await self._list.execute(username)

    async def list_audit(
        self,
        *,
        username: str | None = None,
        command: str | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        return await self._audit.execute(username=username, command=command, limit=limit)

    async def synchronize(self) -> int:
        """Rewrite the policy file from the ledger. Returns rules written."""
        return await self._sync.execute()

    async def is_in_sync(self) -> bool:
        return await self._synchronizer.is_in_sync()

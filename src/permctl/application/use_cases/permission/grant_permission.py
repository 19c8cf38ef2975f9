"""Grant permission use case."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from permctl.application.dto.permission_dto import GrantOutcome
from permctl.application.ports import PolicySynchronizer
from permctl.application.services.access_validator import AccessValidator
from permctl.domain.exceptions import SynchronizationError
from permctl.domain.value_objects import SyncState

logger = logging.getLogger(__name__)


class GrantPermissionUseCase:
    """Validate, persist and enforce a time-bounded grant."""

    def __init__(
        self,
        unit_of_work_factory: type,
        validator: AccessValidator,
        synchronizer: PolicySynchronizer,
        *,
        enforce_concurrent_limit: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._validator = validator
        self._synchronizer = synchronizer
        self._enforce_concurrent_limit = enforce_concurrent_limit
        self._clock = clock or (lambda: datetime.now(UTC))

    async def execute(
        self,
        username: str,
        command: str,
        duration: timedelta,
        granted_by: str,
    ) -> GrantOutcome:
        """Grant command to username for duration.

        Validation errors leave the ledger untouched. If the ledger write
        succeeds but the policy file cannot be rewritten, the grant stays
        durable and the outcome is PERSISTED_NOT_SYNCHRONIZED.
        """
        policy = await self._validator.validate(username, command, duration)
        expires_at = self._clock() + duration
        limit = policy.max_concurrent_users if self._enforce_concurrent_limit else None

        async with self._uow_factory() as uow:
            grant_id = await uow.permissions.grant(
                username,
                command,
                expires_at,
                granted_by,
                max_concurrent_users=limit,
            )

        try:
            await self._synchronizer.rewrite()
        except SynchronizationError as exc:
            logger.error(
                "Grant %s for %s on %s persisted but not enforced: %s",
                grant_id,
                username,
                command,
                exc,
            )
            return GrantOutcome(
                grant_id=grant_id,
                username=username,
                command=command,
                expires_at=expires_at,
                state=SyncState.PERSISTED_NOT_SYNCHRONIZED,
                sync_error=exc,
            )

        return GrantOutcome(
            grant_id=grant_id,
            username=username,
            command=command,
            expires_at=expires_at,
            state=SyncState.SYNCHRONIZED,
        )

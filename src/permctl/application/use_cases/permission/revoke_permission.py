"""Revoke permission use case."""

import logging

from permctl.application.ports import PolicySynchronizer
from permctl.domain.exceptions import RevocationNotEnforced, SynchronizationError

logger = logging.getLogger(__name__)


class RevokePermissionUseCase:
    """Revoke an active grant and remove it from the policy file."""

    def __init__(
        self,
        unit_of_work_factory: type,
        synchronizer: PolicySynchronizer,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._synchronizer = synchronizer

    async def execute(self, username: str, command: str, revoked_by: str) -> bool:
        """Return False when no active grant existed (nothing written, no rewrite).

        Raises RevocationNotEnforced when the ledger revocation committed but
        the policy file still grants the privilege.
        """
        async with self._uow_factory() as uow:
            revoked = await uow.permissions.revoke(username, command, revoked_by)

        if not revoked:
            return False

        try:
            await self._synchronizer.rewrite()
        except SynchronizationError as exc:
            logger.critical(
                "Grant for %s on %s revoked in ledger but still present in %s: %s",
                username,
                command,
                exc.path,
                exc.reason,
            )
            raise RevocationNotEnforced(
                exc.path,
                f"revoked {username} on {command} in ledger but policy file was not rewritten "
                f"({exc.reason})",
            ) from exc
        return True

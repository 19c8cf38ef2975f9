"""Cleanup expired permissions use case."""

import logging

from permctl.application.ports import PolicySynchronizer
from permctl.domain.exceptions import RevocationNotEnforced, SynchronizationError

logger = logging.getLogger(__name__)


class CleanupExpiredUseCase:
    """Sweep expired grants and drop them from the policy file."""

    def __init__(
        self,
        unit_of_work_factory: type,
        synchronizer: PolicySynchronizer,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._synchronizer = synchronizer

    async def execute(self) -> int:
        """Return number of grants swept. Rewrites the file only if any were."""
        async with self._uow_factory() as uow:
            count = await uow.permissions.sweep_expired()

        if count == 0:
            return 0

        logger.info("Swept %d expired grant(s)", count)
        try:
            await self._synchronizer.rewrite()
        except SynchronizationError as exc:
            logger.critical("Swept %d grant(s) but could not rewrite %s: %s", count, exc.path, exc.reason)
            raise RevocationNotEnforced(
                exc.path,
                f"{count} expired grant(s) revoked in ledger but policy file was not rewritten "
                f"({exc.reason})",
            ) from exc
        return count

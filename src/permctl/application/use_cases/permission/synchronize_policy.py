"""Synchronize policy file use case."""

import logging

from permctl.application.ports import PolicySynchronizer

logger = logging.getLogger(__name__)


class SynchronizePolicyUseCase:
    """Force a full rewrite of the policy file from the ledger.

    Repairs drift left by an earlier failed rewrite or an out-of-band edit.
    """

    def __init__(self, synchronizer: PolicySynchronizer) -> None:
        self._synchronizer = synchronizer

    async def execute(self) -> int:
        rules = await self._synchronizer.rewrite()
        logger.info("Policy file resynchronized with %d rule(s)", rules)
        return rules

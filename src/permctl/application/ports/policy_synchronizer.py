"""Policy synchronizer port - projects active grants into the OS policy file."""

from typing import Protocol


class PolicySynchronizer(Protocol):
    """Port for regenerating the enforced policy file from the ledger."""

    async def rewrite(self) -> int: ...

    async def is_in_sync(self) -> bool: ...

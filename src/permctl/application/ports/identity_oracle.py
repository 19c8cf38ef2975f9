"""Identity oracle port - OS user and group lookups."""

from typing import Protocol


class IdentityOracle(Protocol):
    """Port for the two identity predicates the validator consumes.

    Implementations raise SystemLookupError when the lookup itself fails;
    False is only returned for a definitive negative answer.
    """

    async def user_exists(self, username: str) -> bool: ...

    async def user_in_group(self, username: str, group: str) -> bool: ...

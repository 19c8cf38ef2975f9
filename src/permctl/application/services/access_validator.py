"""Access validator - gates a grant request against policy and identity."""

import logging
import re
from collections.abc import Mapping
from datetime import timedelta

from permctl.application.ports import IdentityOracle
from permctl.domain.entities import CommandPolicy
from permctl.domain.exceptions import (
    CommandNotAllowed,
    GroupRequirementNotMet,
    InvalidDuration,
    SystemLookupError,
    UserNotFound,
)

logger = logging.getLogger(__name__)

# Portable POSIX login names; anything else cannot be rendered into sudoers safely.
USERNAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_.-]{0,31}\$?")


class AccessValidator:
    """Checks a grant request in a fixed order, stopping at the first failure."""

    def __init__(
        self,
        policies: Mapping[str, CommandPolicy],
        identity_oracle: IdentityOracle,
    ) -> None:
        self._policies = policies
        self._identity = identity_oracle

    async def validate(self, username: str, command: str, duration: timedelta) -> CommandPolicy:
        """Return the command's policy if the request may be granted.

        SystemLookupError from the identity oracle propagates unchanged.
        """
        policy = self._policies.get(command)
        if policy is None:
            raise CommandNotAllowed(command)

        if duration <= timedelta(0):
            raise InvalidDuration("Duration must be positive")
        if duration > policy.max_duration:
            raise InvalidDuration(
                f"Duration exceeds maximum allowed ({_minutes(policy.max_duration)} minutes)"
            )

        if not USERNAME_PATTERN.fullmatch(username):
            raise UserNotFound(username)
        try:
            if not await self._identity.user_exists(username):
                raise UserNotFound(username)

            for group in sorted(policy.required_groups):
                if not await self._identity.user_in_group(username, group):
                    raise GroupRequirementNotMet(user=username, group=group)
        except SystemLookupError as exc:
            logger.warning("Identity lookup failed while validating %s: %s", username, exc)
            raise

        return policy


def _minutes(value: timedelta) -> int:
    return int(value.total_seconds() // 60)

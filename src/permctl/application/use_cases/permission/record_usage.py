"""Record usage use case."""

from collections.abc import Mapping

from permctl.domain.entities import CommandPolicy


class RecordUsageUseCase:
    """Refresh last_used on the active grant; audit if the command asks for it."""

    def __init__(
        self,
        unit_of_work_factory: type,
        policies: Mapping[str, CommandPolicy],
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._policies = policies

    async def execute(self, username: str, command: str) -> bool:
        """Return whether an active grant was found. Never touches the policy file."""
        policy = self._policies.get(command)
        audit = policy.audit_usage if policy else True
        async with self._uow_factory() as uow:
            return await uow.permissions.record_usage(username, command, audit=audit)

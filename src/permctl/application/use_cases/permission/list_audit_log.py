"""List audit log use case."""

from permctl.domain.entities import AuditLogEntry


class ListAuditLogUseCase:
    """Read the audit trail, newest first."""

    def __init__(self, unit_of_work_factory: type) -> None:
        self._uow_factory = unit_of_work_factory

    async def execute(
        self,
        *,
        username: str | None = None,
        command: str | None = None,
        limit: int = 100,
    ) -> list[AuditLogEntry]:
        async with self._uow_factory() as uow:
            return await uow.audit.list_entries(username=username, command=command, limit=limit)

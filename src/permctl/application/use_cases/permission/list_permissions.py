"""List and check permissions use cases."""

from permctl.domain.entities import PermissionGrant


class ListPermissionsUseCase:
    """List active grants for one user or for everyone."""

    def __init__(self, unit_of_work_factory: type) -> None:
        self._uow_factory = unit_of_work_factory

    async def execute(self, username: str | None = None) -> list[PermissionGrant]:
        async with self._uow_factory() as uow:
            if username is None:
                return await uow.permissions.list_all_active()
            return await uow.permissions.list_active_for_user(username)


class CheckPermissionUseCase:
    """Check whether a user holds an active grant for a command."""

    def __init__(self, unit_of_work_factory: type) -> None:
        self._uow_factory = unit_of_work_factory

    async def execute(self, username: str, command: str) -> bool:
        async with self._uow_factory() as uow:
            return await uow.permissions.check_active(username, command)

"""Reserved actor names for revocations not made by a person."""

from enum import StrEnum


class SystemActor(StrEnum):
    """Actors recorded in revoked_by for automatic revocations."""

    CLEANUP = "system_cleanup"
    SUPERSEDE = "system_supersede"

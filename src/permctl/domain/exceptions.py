"""Domain exceptions."""

from pathlib import Path


class PermctlError(Exception):
    """Base exception for permctl."""

    transient = False


class StorageError(PermctlError):
    """Ledger could not be read or written. Retrying may succeed."""

    transient = True


class ValidationError(PermctlError):
    """Request was rejected. Caller must change the input."""

    pass


class CommandNotAllowed(ValidationError):
    """Command is not in the allowed commands policy."""

    def __init__(self, command: str) -> None:
        super().__init__(f"Command not allowed: {command}")
        self.command = command


class InvalidDuration(ValidationError):
    """Requested duration is not positive or exceeds the policy maximum."""

    pass


class UserNotFound(ValidationError):
    """User does not exist on this host."""

    def __init__(self, username: str) -> None:
        super().__init__(f"User not found: {username}")
        self.username = username


class GroupRequirementNotMet(ValidationError):
    """User is not a member of a group the command requires."""

    def __init__(self, user: str, group: str) -> None:
        super().__init__(
            f"Group requirement not met: user {user} is not in required group {group}"
        )
        self.user = user
        self.group = group


class ConcurrentUserLimitReached(ValidationError):
    """Command already has as many active grants as the policy allows."""

    def __init__(self, command: str, limit: int) -> None:
        super().__init__(
            f"Command {command} already has {limit} concurrent user(s), the policy maximum"
        )
        self.command = command
        self.limit = limit


class SystemLookupError(PermctlError):
    """External identity lookup failed. This is never a definitive answer."""

    transient = True

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"System lookup '{command}' failed: {reason}")
        self.command = command
        self.reason = reason


class SynchronizationError(PermctlError):
    """Policy file could not be regenerated from the ledger."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Failed to synchronize {path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class RevocationNotEnforced(SynchronizationError):
    """Ledger revoked a grant but the policy file still carries it."""

    pass


class ConfigError(PermctlError):
    """Configuration is missing or invalid."""

    pass

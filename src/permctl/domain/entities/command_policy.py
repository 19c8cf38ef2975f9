"""Command policy entity - what may be granted for one command."""

from dataclasses import dataclass, field
from datetime import timedelta


@dataclass(frozen=True)
class CommandPolicy:
    """Policy for one allowed command, immutable for the process lifetime."""

    command: str
    max_duration: timedelta
    description: str = ""
    required_groups: frozenset[str] = field(default_factory=frozenset)
    audit_usage: bool = False
    max_concurrent_users: int = 10

    def __post_init__(self) -> None:
        if not self.command.startswith("/"):
            raise ValueError(f"Command path must be absolute: {self.command}")
        if self.max_duration <= timedelta(0):
            raise ValueError("max_duration must be positive")
        if self.max_concurrent_users < 1:
            raise ValueError("max_concurrent_users must be at least 1")

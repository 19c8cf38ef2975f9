"""Audit log entry entity."""

from dataclasses import dataclass
from datetime import datetime

from permctl.domain.value_objects import AuditAction


@dataclass(frozen=True)
class AuditLogEntry:
    """Append-only record of a grant, revoke or use event."""

    id: int
    timestamp: datetime
    username: str
    command: str
    action: AuditAction
    details: str | None = None

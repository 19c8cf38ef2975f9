"""Repository ports."""

from permctl.application.ports.repositories.audit_log_repository import (
    AuditLogRepository,
)
from permctl.application.ports.repositories.permission_store import PermissionStore

__all__ = [
    "AuditLogRepository",
    "PermissionStore",
]

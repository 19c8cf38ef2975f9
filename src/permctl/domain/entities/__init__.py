"""Domain entities."""

from permctl.domain.entities.audit_log_entry import AuditLogEntry
from permctl.domain.entities.command_policy import CommandPolicy
from permctl.domain.entities.permission_grant import PermissionGrant

__all__ = [
    "AuditLogEntry",
    "CommandPolicy",
    "PermissionGrant",
]

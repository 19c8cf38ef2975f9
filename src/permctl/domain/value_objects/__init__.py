"""Domain value objects."""

from permctl.domain.value_objects.audit_action import AuditAction
from permctl.domain.value_objects.sync_state import SyncState
from permctl.domain.value_objects.system_actor import SystemActor

__all__ = [
    "AuditAction",
    "SyncState",
    "SystemActor",
]

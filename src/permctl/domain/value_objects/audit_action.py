"""Audit trail actions."""

from enum import StrEnum


class AuditAction(StrEnum):
    """Events recorded in the audit log."""

    GRANT = "grant"
    REVOKE = "revoke"
    USE = "use"

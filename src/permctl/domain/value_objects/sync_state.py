"""Enforcement state of a persisted grant."""

from enum import StrEnum


class SyncState(StrEnum):
    """Whether the policy file reflects a ledger mutation."""

    SYNCHRONIZED = "synchronized"
    PERSISTED_NOT_SYNCHRONIZED = "persisted-not-synchronized"

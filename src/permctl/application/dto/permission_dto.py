"""Permission use case DTOs."""

from dataclasses import dataclass
from datetime import datetime

from permctl.domain.exceptions import SynchronizationError
from permctl.domain.value_objects import SyncState


@dataclass
class GrantOutcome:
    """Result of a grant. A persisted grant may not yet be enforced."""

    grant_id: int
    username: str
    command: str
    expires_at: datetime
    state: SyncState
    sync_error: SynchronizationError | None = None

    @property
    def enforced(self) -> bool:
        return self.state is SyncState.SYNCHRONIZED

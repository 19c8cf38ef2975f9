"""Permission grant entity - one time-bounded sudo privilege."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class PermissionGrant:
    """Grant of one command to one user until expires_at. Never deleted."""

    id: int
    username: str
    command: str
    granted_at: datetime
    expires_at: datetime
    granted_by: str
    last_used: datetime | None = None
    revoked: bool = False
    revoked_at: datetime | None = None
    revoked_by: str | None = None

    def is_active(self, now: datetime) -> bool:
        """Unrevoked and not yet expired."""
        return not self.revoked and self.expires_at > now

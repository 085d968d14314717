"""Session state for the broker bearer-token flow."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional


class AuthStatus(Enum):
    """Authentication status enumeration."""
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the broker session.

    Readers always get a whole snapshot; writers replace it in one assignment.
    """
    token: Optional[str] = None
    issued_at: Optional[datetime] = None
    token_ttl: timedelta = timedelta(hours=24)
    account_id: Optional[int] = None
    account_name: Optional[str] = None
    status: AuthStatus = AuthStatus.UNAUTHENTICATED
    last_error: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.issued_at is None:
            return None
        return self.issued_at + self.token_ttl

    def is_expired(self) -> bool:
        """Check if the token is past its nominal lifetime."""
        expires_at = self.expires_at
        if expires_at is None:
            return True
        return datetime.now(timezone.utc) >= expires_at

    def evolve(self, **changes: Any) -> "SessionSnapshot":
        changes.setdefault("updated_at", datetime.now(timezone.utc))
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Public status view; never contains the token itself."""
        return {
            "status": self.status.value,
            "has_token": self.has_token,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "token_expired": self.is_expired() if self.has_token else None,
            "account_id": self.account_id,
            "account_name": self.account_name,
            "last_error": self.last_error,
        }

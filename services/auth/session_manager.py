"""In-memory holder of the broker session snapshot."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from core.logging import get_logger
from .models import AuthStatus, SessionSnapshot

logger = get_logger(__name__, component="session")


class SessionManager:
    """Holds the current broker session.

    Only whole `SessionSnapshot` objects are swapped in, so a reader never sees a
    token paired with a stale account or vice versa. No lock is needed: every
    write is a single attribute assignment between awaits.
    """

    def __init__(self, token_ttl: timedelta = timedelta(hours=24)):
        self._current = SessionSnapshot(token_ttl=token_ttl)

    def snapshot(self) -> SessionSnapshot:
        return self._current

    def current_token(self) -> Optional[str]:
        return self._current.token

    def current_account_id(self) -> Optional[int]:
        return self._current.account_id

    def replace_token(self, token: str) -> SessionSnapshot:
        self._current = self._current.evolve(
            token=token,
            issued_at=datetime.now(timezone.utc),
            status=AuthStatus.AUTHENTICATED,
            last_error=None,
        )
        return self._current

    def record_auth_failure(self, error: str) -> SessionSnapshot:
        # The previous token, if any, stays in place
        self._current = self._current.evolve(
            status=AuthStatus.ERROR if not self._current.has_token else self._current.status,
            last_error=error,
        )
        return self._current

    def set_account(self, account_id: Optional[int], account_name: Optional[str] = None) -> SessionSnapshot:
        self._current = self._current.evolve(account_id=account_id, account_name=account_name)
        if account_id is not None:
            logger.info("Trading account selected", account_id=account_id, account_name=account_name)
        return self._current

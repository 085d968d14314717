from typing import Optional

from core.config.settings import Settings
from core.logging import get_logger
from core.utils.exceptions import AuthError, ConfigError
from services.broker import BrokerAccount, BrokerClient, BrokerRequestError
from .session_manager import SessionManager

logger = get_logger(__name__, component="auth")


class AuthService:
    """Acquires, refreshes and exposes the broker session token."""

    def __init__(self, settings: Settings, broker_client: BrokerClient, session_manager: SessionManager):
        self.settings = settings
        self.broker_client = broker_client
        self.session_manager = session_manager

    async def authenticate(self, username: Optional[str] = None, api_key: Optional[str] = None) -> str:
        """Log in with username + API key and atomically replace the current token.

        Falls back to the configured credentials when none are passed.
        Raises ConfigError when credentials are missing and AuthError when the
        remote call fails; in both cases the previous token stays in place.
        """
        username = self.settings.broker.username if username is None else username
        api_key = self.settings.broker.api_key if api_key is None else api_key

        if not username:
            raise ConfigError("Broker username is required for authentication",
                              config_field="broker.username")
        if not api_key:
            raise ConfigError("Broker API key is required for authentication",
                              config_field="broker.api_key")

        try:
            token = await self.broker_client.login_key(username, api_key)
        except BrokerRequestError as e:
            self.session_manager.record_auth_failure(str(e))
            logger.error("Broker authentication failed", error=str(e), **e.to_details())
            raise AuthError("Broker authentication failed", details=e.to_details()) from e

        self.session_manager.replace_token(token)

        logger.info("Broker session token acquired", broker=self.settings.broker.name)
        return token

    def current_token(self) -> Optional[str]:
        """Latest token, or None when no session has been established."""
        return self.session_manager.current_token()

    def require_token(self) -> str:
        token = self.current_token()
        if not token:
            raise ConfigError("No broker session token available; credentials missing or login failed",
                              config_field="session.token")
        return token

    def require_account_id(self) -> int:
        account_id = self.session_manager.current_account_id()
        if account_id is None:
            raise ConfigError("No trading account resolved; check broker.account_name",
                              config_field="broker.account_name")
        return account_id

    async def refresh_on_schedule(self) -> bool:
        """Scheduled refresh. Failures are logged, never raised."""
        try:
            await self.authenticate()
            logger.info("Scheduled session token refresh succeeded")
            return True
        except (ConfigError, AuthError) as e:
            logger.error("Scheduled session token refresh failed; keeping previous token",
                         error=e.message, has_previous_token=self.current_token() is not None)
            return False

    async def resolve_account(self, name_prefix: Optional[str] = None) -> Optional[BrokerAccount]:
        """Pick the first tradable account whose name starts with the prefix (case-insensitive).

        No match leaves the account unset and returns None.
        """
        prefix = self.settings.broker.account_name if name_prefix is None else name_prefix
        if not prefix:
            raise ConfigError("Account name prefix is not configured", config_field="broker.account_name")

        token = self.require_token()
        try:
            accounts = await self.broker_client.search_accounts(token)
        except BrokerRequestError as e:
            logger.error("Account lookup failed", error=str(e), **e.to_details())
            raise AuthError("Account lookup failed", details=e.to_details()) from e

        account = next((a for a in accounts if a.can_trade and a.matches_prefix(prefix)), None)
        if account is None:
            self.session_manager.set_account(None)
            logger.warning("No tradable account matches prefix", prefix=prefix,
                           accounts_seen=len(accounts))
            return None

        self.session_manager.set_account(account.id, account.name)
        return account

"""Async client for the broker REST API."""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from core.config.settings import BrokerSettings
from core.logging import get_logger
from .exceptions import BrokerRequestError
from .models import BrokerAccount, BrokerContract, OrderRequest, RawTrade

logger = get_logger(__name__, component="broker_client")

AUTH_LOGIN_KEY = "/api/Auth/loginKey"
ACCOUNT_SEARCH = "/api/Account/search"
TRADE_SEARCH = "/api/Trade/search"
ORDER_PLACE = "/api/Order/place"
CONTRACT_SEARCH = "/api/Contract/search"


class BrokerClient:
    """Thin wrapper over the broker endpoints used by the sync engine.

    Every call is bounded by the configured request timeout; a timeout is
    reported like any other transport failure.
    """

    def __init__(self, settings: BrokerSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=httpx.Timeout(settings.request_timeout_seconds),
            transport=transport,
            headers={"accept": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, endpoint: str, payload: Dict[str, Any], token: Optional[str] = None) -> Dict[str, Any]:
        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.post(endpoint, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise BrokerRequestError(f"Request to {endpoint} timed out", endpoint) from e
        except httpx.HTTPError as e:
            raise BrokerRequestError(f"Request to {endpoint} failed: {e}", endpoint) from e

        if not response.is_success:
            raise BrokerRequestError(
                f"{endpoint} returned HTTP {response.status_code}",
                endpoint,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BrokerRequestError(f"{endpoint} returned a non-JSON body", endpoint,
                                     status_code=response.status_code) from e

        if not isinstance(data, dict):
            raise BrokerRequestError(f"{endpoint} returned a malformed envelope", endpoint,
                                     status_code=response.status_code)

        if data.get("success") is False:
            raise BrokerRequestError(
                f"{endpoint} rejected the request: {data.get('errorMessage') or 'no message'}",
                endpoint,
                status_code=response.status_code,
                error_code=data.get("errorCode"),
            )
        return data

    async def login_key(self, username: str, api_key: str) -> str:
        """Exchange username + API key for a bearer session token."""
        data = await self._post(AUTH_LOGIN_KEY, {"username": username, "apiKey": api_key})
        token = data.get("token")
        if not token or not isinstance(token, str):
            raise BrokerRequestError("Login response did not contain a token", AUTH_LOGIN_KEY)
        return token

    async def search_accounts(self, token: str) -> List[BrokerAccount]:
        data = await self._post(ACCOUNT_SEARCH, {"onlyActiveAccounts": True}, token=token)
        accounts = data.get("accounts")
        if not isinstance(accounts, list):
            raise BrokerRequestError("Account search response has no accounts array", ACCOUNT_SEARCH)
        try:
            return [BrokerAccount.model_validate(item) for item in accounts]
        except ValidationError as e:
            raise BrokerRequestError(f"Malformed account record: {e.error_count()} errors",
                                     ACCOUNT_SEARCH) from e

    async def search_trades(self, token: str, account_id: int, start_timestamp: str,
                            end_timestamp: str) -> List[RawTrade]:
        """Fetch every trade of the account inside [start, end)."""
        payload = {
            "accountId": account_id,
            "startTimestamp": start_timestamp,
            "endTimestamp": end_timestamp,
        }
        data = await self._post(TRADE_SEARCH, payload, token=token)
        trades = data.get("trades")
        if trades is None:
            return []
        if not isinstance(trades, list):
            raise BrokerRequestError("Trade search response has a malformed trades field", TRADE_SEARCH)
        try:
            return [RawTrade.model_validate(item) for item in trades]
        except ValidationError as e:
            raise BrokerRequestError(f"Malformed trade record: {e.error_count()} errors",
                                     TRADE_SEARCH) from e

    async def place_order(self, token: str, account_id: int, order: OrderRequest) -> Dict[str, Any]:
        payload = {"accountId": account_id, **order.model_dump(by_alias=True)}
        data = await self._post(ORDER_PLACE, payload, token=token)
        logger.info("Order placed", account_id=account_id, contract_id=order.contract_id,
                    side=order.side, size=order.size, order_id=data.get("orderId"))
        return data

    async def search_contracts(self, token: str, search_text: str, live: bool = False) -> List[BrokerContract]:
        """Free-text contract search; callers apply their own name filter."""
        data = await self._post(CONTRACT_SEARCH, {"searchText": search_text, "live": live}, token=token)
        contracts = data.get("contracts") or []
        if not isinstance(contracts, list):
            raise BrokerRequestError("Contract search response has a malformed contracts field", CONTRACT_SEARCH)
        try:
            return [BrokerContract.model_validate(item) for item in contracts]
        except ValidationError as e:
            raise BrokerRequestError(f"Malformed contract record: {e.error_count()} errors",
                                     CONTRACT_SEARCH) from e

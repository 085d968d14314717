"""Wire models for the broker REST API (camelCase on the wire)."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BrokerModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class BrokerAccount(BrokerModel):
    """Entry of the account search response."""
    id: int
    name: str
    can_trade: bool = False

    def matches_prefix(self, prefix: str) -> bool:
        return self.name.upper().startswith(prefix.upper())


class BrokerContract(BrokerModel):
    """Entry of the contract search response."""
    id: str
    name: str
    description: str = ""
    tick_size: Optional[Decimal] = None
    tick_value: Optional[Decimal] = None
    active_contract: bool = False

    def matches_symbol(self, symbol: str) -> bool:
        return self.name.upper() == symbol.upper()


class RawTrade(BrokerModel):
    """Trade record as returned by the trade-search endpoint.

    `side` is the broker's numeric side code of the order being filled;
    `profit_and_loss` is null while the trade is not realized.
    """
    order_id: int
    account_id: int
    contract_id: str
    creation_timestamp: str
    price: Decimal
    profit_and_loss: Optional[Decimal] = None
    fees: Decimal = Decimal("0")
    side: int
    size: Decimal

    @property
    def is_realized(self) -> bool:
        return self.profit_and_loss is not None


class OrderRequest(BrokerModel):
    """Opaque order placement payload forwarded to the broker."""
    contract_id: str
    size: int = Field(gt=0, validation_alias="quantity")
    side: int  # 0 = buy, 1 = sell on the broker wire
    type: int = 2  # Market
    limit_price: Optional[float] = None
    stop_price: Optional[float] = None
    custom_tag: Optional[str] = None

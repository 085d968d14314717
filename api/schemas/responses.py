from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Generic, TypeVar, Optional, Any, Dict, Literal
from datetime import datetime, timezone

from services.broker.models import OrderRequest

T = TypeVar('T')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StandardResponse(BaseModel, Generic[T]):
    """Standard API response wrapper"""
    status: str = Field(description="Response status")
    message: Optional[str] = Field(None, description="Response message")
    data: Optional[T] = Field(None, description="Response data")
    timestamp: datetime = Field(default_factory=_utcnow)
    broker: Optional[str] = Field(None, description="Broker the data belongs to")


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class _CamelRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SyncWindowRequest(_CamelRequest):
    """Body of POST /api/trades/sync; an empty body means month-to-date"""
    account_id: Optional[int] = None
    start: Optional[str] = Field(None, description="Inclusive ISO-8601 start timestamp")
    end: Optional[str] = Field(None, description="Exclusive ISO-8601 end timestamp")

    @model_validator(mode="after")
    def _both_or_neither(self):
        if (self.start is None) != (self.end is None):
            raise ValueError("start and end must be given together")
        return self


class SessionRequest(_CamelRequest):
    """Credentials override; configured credentials are used when omitted"""
    username: Optional[str] = None
    api_key: Optional[str] = None


class AccountRequest(_CamelRequest):
    name_prefix: Optional[str] = None


class ContractRequest(_CamelRequest):
    symbol: str = Field(min_length=1, description="Exact contract name, case-insensitive")


class TradingViewAlert(BaseModel):
    """Order alert posted by a TradingView webhook.

    The shared `key` has already been checked by the time the alert is
    validated; `price` is required but the order goes out as a market order.
    """
    model_config = ConfigDict(extra="ignore")

    broker: str
    contract_id: str = Field(alias="contractId", min_length=1)
    side: Literal["buy", "sell"]
    quantity: int = Field(gt=0)
    price: float = Field(gt=0)

    @field_validator("side", mode="before")
    @classmethod
    def _lower_side(cls, value):
        return value.lower() if isinstance(value, str) else value

    def to_order(self) -> OrderRequest:
        return OrderRequest(
            contract_id=self.contract_id,
            size=self.quantity,
            side=0 if self.side == "buy" else 1,
        )

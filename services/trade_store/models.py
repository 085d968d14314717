"""Stored trade shape and persistence results."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel

from core.database.models import Trade

Side = Literal["buy", "sell"]


class TradeRecord(BaseModel):
    """A persisted trade, also the payload of the outbound "new trade" event."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    broker: str
    account_id: int
    contract_id: str
    creation_timestamp: str
    price: Decimal
    profit_and_loss: Decimal
    fees: Decimal
    side: Side
    size: Decimal
    order_id: int

    @property
    def dedup_key(self) -> tuple:
        return (self.broker, self.account_id, self.order_id, self.creation_timestamp)

    @field_serializer("price", "profit_and_loss", "fees", "size", when_used="json")
    def _decimal_as_number(self, value: Decimal) -> float:
        return float(value)

    @classmethod
    def from_row(cls, row: Trade) -> "TradeRecord":
        return cls(
            broker=row.broker,
            account_id=row.account_id,
            contract_id=row.contract_id,
            creation_timestamp=row.creation_timestamp,
            price=row.price,
            profit_and_loss=row.profit_and_loss,
            fees=row.fees,
            side=row.side,
            size=row.size,
            order_id=row.order_id,
        )

    def to_row_values(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=False)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready camelCase view."""
        return self.model_dump(by_alias=True, mode="json")


@dataclass
class PersistResult:
    inserted: bool
    trade: Optional[TradeRecord] = None
    excluded: bool = False  # null P&L: neither inserted nor skipped

    @property
    def skipped(self) -> bool:
        return not self.inserted and not self.excluded


@dataclass
class BatchResult:
    inserted: List[TradeRecord] = field(default_factory=list)
    skipped: int = 0
    excluded: int = 0

    @property
    def inserted_count(self) -> int:
        return len(self.inserted)

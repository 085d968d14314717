"""Raw broker trade -> stored trade mapping."""

from services.broker.models import RawTrade
from .models import TradeRecord

# The broker's side code describes the resting order that was filled, so the
# stored side is the opposite: code 1 -> "buy", anything else -> "sell".
# TODO: confirm the inversion against the broker's documented fill semantics.
BUY_SIDE_CODE = 1

# Stored fee is twice the reported value.
# TODO: confirm with product whether this models round-trip fees.
FEE_MULTIPLIER = 2


def map_side(side_code: int) -> str:
    return "buy" if side_code == BUY_SIDE_CODE else "sell"


def map_raw_trade(raw: RawTrade, broker: str) -> TradeRecord:
    """Map a realized raw trade to the stored shape.

    Raises ValueError for unrealized trades (null P&L); those are never stored.
    """
    if raw.profit_and_loss is None:
        raise ValueError(f"Trade {raw.order_id} has no realized P&L")

    return TradeRecord(
        broker=broker,
        account_id=raw.account_id,
        contract_id=raw.contract_id,
        creation_timestamp=raw.creation_timestamp,
        price=raw.price,
        profit_and_loss=raw.profit_and_loss,
        fees=raw.fees * FEE_MULTIPLIER,
        side=map_side(raw.side),
        size=raw.size,
        order_id=raw.order_id,
    )

# Database models for ingested broker trades
from decimal import Decimal

from sqlalchemy import Column, BigInteger, String, Numeric, DateTime, Index, PrimaryKeyConstraint
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator
from .connection import Base

# Precision of every monetary and quantity column
AMOUNT_PRECISION = 20
AMOUNT_SCALE = 8


class Amount(TypeDecorator):
    """Exact decimal amount.

    NUMERIC(20, 8) on PostgreSQL. SQLite has no native decimal type, so the
    canonical decimal text is stored instead and parsed back on load; values
    never pass through float.
    """
    impl = Numeric(AMOUNT_PRECISION, AMOUNT_SCALE, asdecimal=True)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(AMOUNT_PRECISION + 2))
        return dialect.type_descriptor(Numeric(AMOUNT_PRECISION, AMOUNT_SCALE, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        return str(value if isinstance(value, Decimal) else Decimal(str(value)))

    def process_result_value(self, value, dialect):
        if value is None or dialect.name != "sqlite":
            return value
        return Decimal(value)


class Trade(Base):
    """Executed trade as ingested from the broker trade-search API.

    Rows are never updated in place. The composite primary key is the dedup key:
    (broker, account_id, order_id, creation_timestamp).
    """
    __tablename__ = "trades"

    broker = Column(String, nullable=False)
    account_id = Column(BigInteger, nullable=False)
    contract_id = Column(String, nullable=False)
    creation_timestamp = Column(String, nullable=False)  # Broker ISO-8601 string, kept verbatim
    price = Column(Amount, nullable=False)
    profit_and_loss = Column(Amount, nullable=False)
    fees = Column(Amount, nullable=False)
    side = Column(String(4), nullable=False)
    size = Column(Amount, nullable=False)
    order_id = Column(BigInteger, nullable=False)

    ingested_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        PrimaryKeyConstraint('broker', 'account_id', 'order_id', 'creation_timestamp', name='pk_trades'),
        Index('idx_trades_creation_timestamp', 'creation_timestamp'),
    )

"""Transactional trade persistence with insert-if-absent deduplication."""

from typing import Iterable, List

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from core.database.connection import DatabaseManager
from core.database.models import Trade
from core.logging import get_logger
from core.utils.exceptions import PersistError
from services.broker.models import RawTrade
from .mapping import map_raw_trade
from .models import BatchResult, PersistResult, TradeRecord

logger = get_logger(__name__, component="trade_store")

_DEDUP_KEY = ["broker", "account_id", "order_id", "creation_timestamp"]

_INSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class TradeStore:
    """Durable table of ingested trades.

    Deduplication relies on the table's primary key: every insert is an
    `INSERT ... ON CONFLICT DO NOTHING`, so two concurrent writers for the same
    key cannot both insert, and a conflict simply reports "skipped".
    """

    def __init__(self, db_manager: DatabaseManager, broker_name: str):
        self.db_manager = db_manager
        self.broker_name = broker_name
        try:
            self._insert = _INSERT_BUILDERS[db_manager.dialect_name]
        except KeyError:
            raise ValueError(
                f"Unsupported database dialect for trade store: {db_manager.dialect_name}"
            ) from None

    async def init(self) -> None:
        await self.db_manager.init()

    def _insert_if_absent(self, record: TradeRecord):
        return (
            self._insert(Trade.__table__)
            .values(**record.to_row_values())
            .on_conflict_do_nothing(index_elements=_DEDUP_KEY)
        )

    async def persist(self, raw_trade: RawTrade) -> PersistResult:
        """Insert one raw trade unless it is unrealized or already stored."""
        batch = await self.persist_batch([raw_trade])
        if batch.excluded:
            return PersistResult(inserted=False, excluded=True)
        if batch.inserted:
            return PersistResult(inserted=True, trade=batch.inserted[0])
        return PersistResult(inserted=False)

    async def persist_batch(self, raw_trades: Iterable[RawTrade]) -> BatchResult:
        """Insert every realized trade in input order inside one transaction.

        Returns the newly inserted records so callers can publish them once the
        transaction has committed. Any non-duplicate failure rolls back the
        whole batch and raises PersistError.
        """
        result = BatchResult()
        records: List[TradeRecord] = []
        for raw in raw_trades:
            if not raw.is_realized:
                result.excluded += 1
                continue
            records.append(map_raw_trade(raw, self.broker_name))

        if not records:
            return result

        inserted: List[TradeRecord] = []
        skipped = 0
        try:
            async with self.db_manager.get_session() as session:
                async with session.begin():
                    for record in records:
                        outcome = await session.execute(self._insert_if_absent(record))
                        if outcome.rowcount == 1:
                            inserted.append(record)
                        else:
                            skipped += 1
        except SQLAlchemyError as e:
            logger.error("Trade batch rolled back", error=str(e), batch_size=len(records))
            raise PersistError(
                "Trade batch could not be persisted; nothing was written",
                operation="persist_batch",
                details={"batch_size": len(records)},
            ) from e

        result.inserted = inserted
        result.skipped = skipped
        logger.debug("Trade batch committed", inserted=len(inserted), skipped=skipped,
                     excluded=result.excluded)
        return result

    async def list_all(self) -> List[TradeRecord]:
        """Every stored trade, newest first."""
        query = (
            select(Trade)
            .where(Trade.profit_and_loss.is_not(None))
            .order_by(Trade.creation_timestamp.desc(), Trade.order_id.desc())
        )
        try:
            async with self.db_manager.get_session() as session:
                rows = (await session.execute(query)).scalars().all()
        except SQLAlchemyError as e:
            raise PersistError("Failed to list trades", operation="list_all") from e
        return [TradeRecord.from_row(row) for row in rows]

    async def clear_all(self) -> int:
        """Delete every stored trade; returns the number of rows removed."""
        try:
            async with self.db_manager.get_session() as session:
                async with session.begin():
                    outcome = await session.execute(delete(Trade.__table__))
        except SQLAlchemyError as e:
            raise PersistError("Failed to clear trades table", operation="clear_all") from e
        logger.info("Trades table cleared", rows_deleted=outcome.rowcount)
        return outcome.rowcount

    async def count(self) -> int:
        try:
            async with self.db_manager.get_session() as session:
                return (await session.execute(select(func.count()).select_from(Trade))).scalar_one()
        except SQLAlchemyError as e:
            raise PersistError("Failed to count trades", operation="count") from e

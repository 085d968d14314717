# Async SQLAlchemy engine/session management
import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text

from core.logging import get_logger

logger = get_logger(__name__, component="database")

# The base class for all SQLAlchemy models
Base = declarative_base()


class DatabaseManager:
    """Manages the connection to the trade database"""

    def __init__(self, db_url: str, echo: bool = False):
        engine_kwargs = {"echo": echo, "pool_pre_ping": True}
        if not db_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=10,        # Base pool size
                max_overflow=20,     # Additional connections beyond pool_size
                pool_recycle=3600,   # Recycle connections after 1 hour
            )
        self._engine = create_async_engine(db_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
            class_=AsyncSession
        )

    @property
    def dialect_name(self) -> str:
        return self._engine.dialect.name

    async def init(self) -> None:
        """Create the schema if it does not exist yet (idempotent)."""
        # Models must be imported so their tables are registered on Base.metadata
        from core.database import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready", dialect=self.dialect_name)

    async def verify_connection(self) -> bool:
        """Verify database connection is ready"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.error("Database connection verification failed", error=str(e))
            return False

    async def wait_for_ready(self, timeout: float = 30, check_interval: float = 1.0) -> bool:
        """Wait for database to be ready with timeout"""
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        while (loop.time() - start_time) < timeout:
            if await self.verify_connection():
                logger.info("Database connection verified")
                return True

            logger.info("Database not ready, waiting...")
            await asyncio.sleep(check_interval)

        raise RuntimeError(f"Database not ready after {timeout} seconds")

    async def shutdown(self) -> None:
        """Closes the database connection pool"""
        await self._engine.dispose()
        logger.info("Database connection pool closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Provides a new database session WITHOUT auto-commit.

        Callers own the transaction boundary (session.begin() / commit()).
        """
        session_start_time = time.time()
        async with self._session_factory() as session:
            try:
                yield session
            except Exception as session_error:
                await session.rollback()
                logger.error(
                    "Database session error with rollback",
                    error=str(session_error),
                    session_duration_ms=(time.time() - session_start_time) * 1000,
                )
                raise
            finally:
                session_duration = (time.time() - session_start_time) * 1000
                if session_duration > 5000:
                    logger.warning(
                        "Long-running database session",
                        session_duration_ms=session_duration,
                        threshold_ms=5000,
                    )

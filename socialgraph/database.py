"""
Async SQLAlchemy store handle.

TiDB is wire-compatible with MySQL 5.7, so production uses the aiomysql
driver; tests run the same code against SQLite through aiosqlite.

There is no module-level engine: the application builds one ``Store`` at
startup and hands it to every component that touches the database.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from socialgraph.config import Settings
from socialgraph.errors import StoreUnavailable

logger = logging.getLogger(__name__)

MYSQL_DUP_ENTRY = 1062


class Base(DeclarativeBase):
    pass


def is_duplicate_key(exc: IntegrityError) -> bool:
    """True for a unique/primary-key violation, False for FK or CHECK failures."""
    orig = exc.orig
    args = getattr(orig, "args", ())
    if args and args[0] == MYSQL_DUP_ENTRY:
        return True
    return "UNIQUE constraint failed" in str(orig)


class Store:
    """Engine + session factory, and the unit-of-work boundary."""

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine = create_async_engine(url, pool_pre_ping=True, **engine_kwargs)
        self.sessionmaker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Store":
        url = settings.database_url
        kwargs = {"echo": settings.db_echo}
        if not url.startswith("sqlite"):
            kwargs.update(
                pool_size=settings.db_pool_size,
                max_overflow=settings.db_max_overflow,
            )
        return cls(url, **kwargs)

    async def init_db(self) -> None:
        """Create all tables if they don't exist (idempotent)."""
        # Models register themselves on Base.metadata at import time.
        from socialgraph import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialised")

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        One atomic unit of work.

        Commits when the block exits cleanly. Any exception, including
        cancellation of the calling task, rolls back everything written
        in the block. Connectivity failures surface as StoreUnavailable;
        the core never retries them.
        """
        try:
            async with self.sessionmaker() as session:
                async with session.begin():
                    yield session
        except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
            logger.error("Store failure: %s", exc)
            raise StoreUnavailable() from exc

"""Async engine and session factory for the billing tables."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from billsync.core.config import settings

_IDLE_TX_TIMEOUT_MS = 5 * 60 * 1000

_connect_args: dict = {
    "server_settings": {"idle_in_transaction_session_timeout": str(_IDLE_TX_TIMEOUT_MS)},
    "command_timeout": 60,
}
if settings.POSTGRES_SSLMODE == "disable":
    # PgBouncer sidecar speaks plaintext
    _connect_args["ssl"] = False

async_engine = create_async_engine(
    str(settings.SQLALCHEMY_ASYNC_DATABASE_URI),
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_pool_max_overflow,
    pool_pre_ping=True,
    pool_recycle=300,
    pool_timeout=30,
    # Post-conflict re-reads must observe the competing writer's commit
    isolation_level="READ COMMITTED",
    connect_args=_connect_args,
)

# Rows returned by a conditional update stay readable after the commit that made them durable
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine, autoflush=False, expire_on_commit=False
)


@asynccontextmanager
async def get_db_context() -> AsyncIterator[AsyncSession]:
    """Open a session for one unit of billing work (a delivery or a reconciliation pass).

    Example:
    -------
        async with get_db_context() as db:
            result = await billing_sync.update_billing_status(db, request)

    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            try:
                await session.close()
            except Exception:
                # Server may already have dropped an idle connection
                pass

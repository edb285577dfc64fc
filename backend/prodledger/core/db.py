"""Async database session management helpers."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator

from sqlalchemy.exc import ResourceClosedError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from prodledger.core.config import settings


def _engine_options() -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True, "echo": settings.DEBUG}
    if settings.is_mysql:
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            isolation_level=settings.DB_ISOLATION_LEVEL,
        )
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options())

SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async database session."""

    async with SessionLocal() as session:
        yield session


def _dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


@asynccontextmanager
async def repeatable_read_transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """Run the enclosed block in one DB transaction with bounded lock waits.

    On MySQL the transaction runs at REPEATABLE READ with the
    session's ``innodb_lock_wait_timeout`` and ``MAX_EXECUTION_TIME`` lowered
    for its duration, so a blocked ``FOR UPDATE`` surfaces as a retryable
    error instead of hanging the request. Other dialects (SQLite in tests)
    just get a plain transaction.
    """

    if session.in_transaction():
        await session.rollback()

    if _dialect_name(session) != "mysql":
        async with session.begin():
            yield session
        return

    async with session.begin():
        # The isolation level must be chosen before the first statement of
        # the transaction, which is why the connection is requested here.
        conn = await session.connection(
            execution_options={"isolation_level": "REPEATABLE READ"}
        )
        prev_lock_wait = (
            await conn.exec_driver_sql("SELECT @@SESSION.innodb_lock_wait_timeout")
        ).scalar_one()
        prev_max_exec = (
            await conn.exec_driver_sql("SELECT @@SESSION.max_execution_time")
        ).scalar_one()
        await conn.exec_driver_sql(
            f"SET SESSION innodb_lock_wait_timeout = {settings.INNODB_LOCK_WAIT_TIMEOUT_SEC}"
        )
        await conn.exec_driver_sql(
            f"SET SESSION MAX_EXECUTION_TIME = {settings.SELECT_MAX_EXECUTION_TIME_MS}"
        )
        try:
            yield session
        finally:
            try:
                await conn.exec_driver_sql(
                    f"SET SESSION innodb_lock_wait_timeout = {int(prev_lock_wait)}"
                )
                await conn.exec_driver_sql(
                    f"SET SESSION MAX_EXECUTION_TIME = {int(prev_max_exec)}"
                )
            except ResourceClosedError:
                # The connection was already invalidated (e.g. by a failed
                # statement); its session variables die with it.
                pass

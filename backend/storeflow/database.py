"""Database connection, session management and transaction helpers."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import DateTime, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from storeflow.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SoftDeleteMixin:
    """Rows are never physically removed; ``deleted_at`` marks them dead."""

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    @classmethod
    def alive(cls):
        """Clause selecting rows that have not been soft deleted."""
        return cls.deleted_at.is_(None)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = utcnow()


async def get_db() -> AsyncSession:
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def atomic(session: AsyncSession, timeout_ms: int | None = None):
    """Group a multi-table write so that any failure rolls every statement back.

    Reads issued before entering are part of the same database transaction,
    so pre-checks should run first to keep this block short. On PostgreSQL
    ``timeout_ms`` becomes the statement timeout of the current transaction.
    """
    if timeout_ms and session.get_bind().dialect.name == "postgresql":
        await session.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
    try:
        yield session
        await session.flush()
    except Exception:
        logger.warning("Transaction rolled back")
        await session.rollback()
        raise

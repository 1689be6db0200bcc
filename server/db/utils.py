from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")

TransactionalWork = Callable[[AsyncSession], Awaitable[T]]


def normalize_database_url(url: str) -> str:
    """Ensure SQLAlchemy uses the psycopg driver even if a plain postgres URL is provided."""
    if url.startswith("postgresql+psycopg://"):
        return url
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


async def with_transaction(session: AsyncSession, work: TransactionalWork[T]) -> T:
    """Run ``work`` and commit; roll back and re-raise on any failure."""
    try:
        result = await work(session)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return result

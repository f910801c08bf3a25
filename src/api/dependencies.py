"""FastAPI dependency injection helpers."""

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import normalize_principal
from src.domain.ledger import LedgerStateMachine
from src.infrastructure.database import async_session_factory
from src.infrastructure.repositories import SqlLedgerStore


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_ledger(db: AsyncSession = Depends(get_db)) -> LedgerStateMachine:
    """Ledger rules bound to this request's unit of work."""
    return LedgerStateMachine(SqlLedgerStore(db))


async def get_caller(
    x_principal: str = Header(..., description="Caller address (0x + 40 hex digits)."),
) -> str:
    """The principal the request acts as.

    The header is trusted as-is; verifying that the client controls the
    address is left to the deployment in front of this service.
    """
    return normalize_principal(x_principal)

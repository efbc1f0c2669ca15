"""Dependency injection helpers for FastAPI."""

from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from stillhouse.core.config import settings
from stillhouse.db.session import get_session_maker
from stillhouse.repositories.base import UnitOfWork
from stillhouse.repositories.sql import SqlUnitOfWork
from stillhouse.services import ContainerKindService, LedgerService, OperationEngine


def get_uow_factory() -> Callable[[], UnitOfWork]:
    """One SQL unit of work per operation. Overridden in tests."""
    session_maker = get_session_maker()
    return lambda: SqlUnitOfWork(session_maker, lock_timeout=settings.LOCK_TIMEOUT_SECONDS)


async def get_owner_id(x_owner_id: Optional[UUID] = Header(default=None)) -> UUID:
    """Owning party for the request.

    TODO: Resolve the owner from an authenticated session instead of a header.
    """
    if not x_owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Owner-Id header required",
        )
    return x_owner_id


def get_engine(uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)) -> OperationEngine:
    return OperationEngine(uow_factory)


def get_ledger_service(uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)) -> LedgerService:
    return LedgerService(uow_factory)


def get_kind_service(uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory)) -> ContainerKindService:
    return ContainerKindService(uow_factory)

"""
Stillhouse Ledger - SQLAlchemy Store

Repository contracts over an AsyncSession. One unit of work is one
database transaction; container locks are row locks taken with
SELECT ... FOR UPDATE in ascending id order.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stillhouse.core.errors import ConflictError, NotFoundError
from stillhouse.core.types import ZERO, as_utc, utcnow
from stillhouse.db.models import ContainerKindRow, ContainerRow, TransactionRow
from stillhouse.models.container import Container, ContainerKind
from stillhouse.models.transaction import (
    Transaction,
    TransactionFilter,
    TransactionSummary,
    TransactionTypeCount,
)
from stillhouse.repositories.base import (
    ContainerKindRepository,
    ContainerRepository,
    LedgerRepository,
    UnitOfWork,
    lock_order,
)

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


def _container(row: ContainerRow) -> Container:
    return Container.model_validate(row, from_attributes=True)


def _transaction(row: TransactionRow) -> Transaction:
    return Transaction.model_validate(row, from_attributes=True)


def _kind(row: ContainerKindRow) -> ContainerKind:
    return ContainerKind.model_validate(row, from_attributes=True)


# =============================================================================
# REPOSITORIES
# =============================================================================

class SqlContainerRepository(ContainerRepository):

    def __init__(self, session: AsyncSession, lock_timeout: float) -> None:
        self._session = session
        self._lock_timeout = lock_timeout

    async def _row(self, container_id: uuid.UUID, owner_id: uuid.UUID) -> ContainerRow:
        result = await self._session.execute(
            select(ContainerRow).where(
                ContainerRow.id == container_id,
                ContainerRow.owner_id == owner_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(
                f"Container {container_id} not found",
                details={"container_id": container_id},
            )
        return row

    async def get(self, container_id: uuid.UUID, owner_id: uuid.UUID) -> Container:
        return _container(await self._row(container_id, owner_id))

    async def get_for_update(
        self,
        owner_id: uuid.UUID,
        container_ids: Sequence[uuid.UUID],
    ) -> dict[uuid.UUID, Container]:
        ordered = lock_order(container_ids)
        stmt = (
            select(ContainerRow)
            .where(ContainerRow.id.in_(ordered), ContainerRow.owner_id == owner_id)
            .order_by(ContainerRow.id)
            .with_for_update()
        )
        try:
            result = await asyncio.wait_for(self._session.execute(stmt), timeout=self._lock_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Lock timeout on containers {ordered} after {self._lock_timeout}s")
            raise ConflictError(
                f"Containers {', '.join(str(i) for i in ordered)} are locked by another operation",
                details={"container_ids": ordered, "timeout_seconds": self._lock_timeout},
            )
        except OperationalError as e:
            logger.warning(f"Lock not available on containers {ordered}: {e}")
            raise ConflictError(
                "Container lock not available",
                details={"container_ids": ordered},
            ) from e

        rows = {row.id: row for row in result.scalars().all()}
        for container_id in ordered:
            if container_id not in rows:
                raise NotFoundError(
                    f"Container {container_id} not found",
                    details={"container_id": container_id},
                )
        return {container_id: _container(rows[container_id]) for container_id in container_ids}

    async def list(self, owner_id: uuid.UUID) -> list[Container]:
        result = await self._session.execute(
            select(ContainerRow)
            .where(ContainerRow.owner_id == owner_id)
            .order_by(ContainerRow.created_at)
        )
        return [_container(row) for row in result.scalars().all()]

    async def create(self, container: Container) -> Container:
        row = ContainerRow(**container.model_dump())
        self._session.add(row)
        await self._session.flush()
        return _container(row)

    async def update(
        self,
        container_id: uuid.UUID,
        owner_id: uuid.UUID,
        fields: dict[str, Any],
    ) -> Container:
        row = await self._row(container_id, owner_id)
        for field, value in fields.items():
            setattr(row, field, value)
        row.updated_at = utcnow()
        await self._session.flush()
        return _container(row)

    async def delete(self, container_id: uuid.UUID, owner_id: uuid.UUID) -> None:
        row = await self._row(container_id, owner_id)
        await self._session.delete(row)
        await self._session.flush()


class SqlLedgerRepository(LedgerRepository):

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, transaction: Transaction) -> Transaction:
        data = transaction.model_dump()
        data["id"] = uuid.uuid4()
        data["created_at"] = utcnow()
        row = TransactionRow(**data)
        self._session.add(row)
        await self._session.flush()
        return _transaction(row)

    async def get(self, transaction_id: uuid.UUID, owner_id: uuid.UUID) -> Transaction:
        result = await self._session.execute(
            select(TransactionRow).where(
                TransactionRow.id == transaction_id,
                TransactionRow.owner_id == owner_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(
                f"Transaction {transaction_id} not found",
                code="NF_TRANSACTION",
                details={"transaction_id": transaction_id},
            )
        return _transaction(row)

    def _window(self, stmt, owner_id, start_date, end_date):
        stmt = stmt.where(TransactionRow.owner_id == owner_id)
        if start_date:
            stmt = stmt.where(TransactionRow.created_at >= as_utc(start_date))
        if end_date:
            stmt = stmt.where(TransactionRow.created_at <= as_utc(end_date))
        return stmt

    async def query(self, owner_id: uuid.UUID, filters: TransactionFilter) -> list[Transaction]:
        stmt = self._window(select(TransactionRow), owner_id, filters.start_date, filters.end_date)
        if filters.transaction_type:
            stmt = stmt.where(TransactionRow.transaction_type == filters.transaction_type)
        if filters.container_id:
            stmt = stmt.where(TransactionRow.container_id == filters.container_id)
        stmt = (
            stmt.order_by(TransactionRow.created_at.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        result = await self._session.execute(stmt)
        return [_transaction(row) for row in result.scalars().all()]

    async def for_container(self, owner_id: uuid.UUID, container_id: uuid.UUID) -> list[Transaction]:
        result = await self._session.execute(
            select(TransactionRow)
            .where(
                TransactionRow.owner_id == owner_id,
                TransactionRow.container_id == container_id,
            )
            .order_by(TransactionRow.created_at)
        )
        return [_transaction(row) for row in result.scalars().all()]

    async def summarize(
        self,
        owner_id: uuid.UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TransactionSummary:
        totals = await self._session.execute(
            self._window(
                select(
                    func.count(TransactionRow.id),
                    func.coalesce(func.sum(TransactionRow.volume_gallons), 0),
                    func.coalesce(func.sum(TransactionRow.proof_gallons), 0),
                ),
                owner_id, start_date, end_date,
            )
        )
        count, volume, proof_gallons = totals.one()

        by_type = await self._session.execute(
            self._window(
                select(TransactionRow.transaction_type, func.count(TransactionRow.id)),
                owner_id, start_date, end_date,
            )
            .group_by(TransactionRow.transaction_type)
            .order_by(func.count(TransactionRow.id).desc())
        )

        recent = await self._session.execute(
            self._window(select(TransactionRow), owner_id, start_date, end_date)
            .order_by(TransactionRow.created_at.desc())
            .limit(RECENT_LIMIT)
        )

        return TransactionSummary(
            total_transactions=count,
            by_type=[
                TransactionTypeCount(transaction_type=t_type, count=n)
                for t_type, n in by_type.all()
            ],
            total_volume_gallons=Decimal(volume or ZERO),
            total_proof_gallons=Decimal(proof_gallons or ZERO),
            recent=[_transaction(row) for row in recent.scalars().all()],
        )


class SqlContainerKindRepository(ContainerKindRepository):

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, kind_id: uuid.UUID, owner_id: uuid.UUID) -> ContainerKind:
        result = await self._session.execute(
            select(ContainerKindRow).where(
                ContainerKindRow.id == kind_id,
                ContainerKindRow.owner_id == owner_id,
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFoundError(
                f"Container kind {kind_id} not found",
                code="NF_CONTAINER_KIND",
                details={"kind_id": kind_id},
            )
        return _kind(row)

    async def capacity_gallons(self, kind_id: uuid.UUID) -> Optional[Decimal]:
        result = await self._session.execute(
            select(ContainerKindRow.capacity_gallons).where(ContainerKindRow.id == kind_id)
        )
        return result.scalar_one_or_none()

    async def list(self, owner_id: uuid.UUID) -> list[ContainerKind]:
        result = await self._session.execute(
            select(ContainerKindRow)
            .where(ContainerKindRow.owner_id == owner_id)
            .order_by(ContainerKindRow.name)
        )
        return [_kind(row) for row in result.scalars().all()]

    async def create(self, kind: ContainerKind) -> ContainerKind:
        row = ContainerKindRow(**kind.model_dump())
        self._session.add(row)
        await self._session.flush()
        return _kind(row)


# =============================================================================
# UNIT OF WORK
# =============================================================================

class SqlUnitOfWork(UnitOfWork):
    """One database transaction. Uncommitted work is rolled back on exit."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        lock_timeout: float = 5.0,
    ) -> None:
        self._session_maker = session_maker
        self._lock_timeout = lock_timeout
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SqlUnitOfWork":
        self._session = self._session_maker()
        await self._session.begin()
        if self._session.bind.dialect.name == "postgresql":
            timeout_ms = int(self._lock_timeout * 1000)
            await self._session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))

        self.containers = SqlContainerRepository(self._session, self._lock_timeout)
        self.ledger = SqlLedgerRepository(self._session)
        self.kinds = SqlContainerKindRepository(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self._session.in_transaction():
                await self.rollback()
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except DBAPIError as e:
            logger.error(f"Commit rejected by database: {e}")
            raise ConflictError(
                "Concurrent modification rejected by the database",
                code="CONFLICT_CONCURRENT_UPDATE",
            ) from e

    async def rollback(self) -> None:
        await self._session.rollback()

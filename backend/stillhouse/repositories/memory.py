"""
Stillhouse Ledger - In-Memory Store

Process-local implementation of the repository contracts. Used by the
test suite and for running the service without a database.

Writes made inside a unit of work are staged and only become visible to
other units of work on commit(). Container locks are per-container
asyncio locks, always acquired in lock_order().
"""

import asyncio
import logging
import uuid
from collections import Counter
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from stillhouse.core.errors import ConflictError, NotFoundError
from stillhouse.core.types import ZERO, as_utc, utcnow
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


class InMemoryStore:
    """Committed state shared by every unit of work built on it."""

    def __init__(self) -> None:
        self.containers: dict[uuid.UUID, Container] = {}
        self.kinds: dict[uuid.UUID, ContainerKind] = {}
        self.transactions: list[Transaction] = []
        self._locks: dict[uuid.UUID, asyncio.Lock] = {}

    def lock_for(self, container_id: uuid.UUID) -> asyncio.Lock:
        if container_id not in self._locks:
            self._locks[container_id] = asyncio.Lock()
        return self._locks[container_id]

    def discard_lock(self, container_id: uuid.UUID) -> None:
        """Drop the lock of a container that no longer exists, unless held."""
        lock = self._locks.get(container_id)
        if lock is not None and not lock.locked() and container_id not in self.containers:
            del self._locks[container_id]

    def unit_of_work(self, lock_timeout: float = 5.0) -> "InMemoryUnitOfWork":
        return InMemoryUnitOfWork(self, lock_timeout=lock_timeout)


# =============================================================================
# REPOSITORIES
# =============================================================================

class InMemoryContainerRepository(ContainerRepository):

    def __init__(self, uow: "InMemoryUnitOfWork") -> None:
        self._uow = uow
        self._store = uow.store

    def _current(self, container_id: uuid.UUID) -> Optional[Container]:
        if container_id in self._uow.staged_containers:
            return self._uow.staged_containers[container_id]
        return self._store.containers.get(container_id)

    async def get(self, container_id: uuid.UUID, owner_id: uuid.UUID) -> Container:
        container = self._current(container_id)
        if container is None or container.owner_id != owner_id:
            raise NotFoundError(
                f"Container {container_id} not found",
                details={"container_id": container_id},
            )
        return container.model_copy(deep=True)

    async def get_for_update(
        self,
        owner_id: uuid.UUID,
        container_ids: Sequence[uuid.UUID],
    ) -> dict[uuid.UUID, Container]:
        for container_id in lock_order(container_ids):
            await self._uow.acquire(container_id)
        return {
            container_id: await self.get(container_id, owner_id)
            for container_id in container_ids
        }

    async def list(self, owner_id: uuid.UUID) -> list[Container]:
        ids = set(self._store.containers) | set(self._uow.staged_containers)
        result = []
        for container_id in ids:
            container = self._current(container_id)
            if container is not None and container.owner_id == owner_id:
                result.append(container.model_copy(deep=True))
        return sorted(result, key=lambda c: c.created_at)

    async def create(self, container: Container) -> Container:
        self._uow.staged_containers[container.id] = container.model_copy(deep=True)
        return container

    async def update(
        self,
        container_id: uuid.UUID,
        owner_id: uuid.UUID,
        fields: dict[str, Any],
    ) -> Container:
        current = await self.get(container_id, owner_id)
        updated = current.model_copy(update={**fields, "updated_at": utcnow()})
        self._uow.staged_containers[container_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, container_id: uuid.UUID, owner_id: uuid.UUID) -> None:
        await self.get(container_id, owner_id)
        self._uow.staged_containers[container_id] = None


class InMemoryLedgerRepository(LedgerRepository):

    def __init__(self, uow: "InMemoryUnitOfWork") -> None:
        self._uow = uow
        self._store = uow.store

    def _visible(self, owner_id: uuid.UUID) -> list[Transaction]:
        return [
            t for t in self._store.transactions + self._uow.staged_transactions
            if t.owner_id == owner_id
        ]

    async def append(self, transaction: Transaction) -> Transaction:
        stored = transaction.model_copy(update={
            "id": uuid.uuid4(),
            "created_at": utcnow(),
        })
        self._uow.staged_transactions.append(stored)
        return stored

    async def get(self, transaction_id: uuid.UUID, owner_id: uuid.UUID) -> Transaction:
        for transaction in self._visible(owner_id):
            if transaction.id == transaction_id:
                return transaction
        raise NotFoundError(
            f"Transaction {transaction_id} not found",
            code="NF_TRANSACTION",
            details={"transaction_id": transaction_id},
        )

    async def query(self, owner_id: uuid.UUID, filters: TransactionFilter) -> list[Transaction]:
        matches = [
            t for t in self._visible(owner_id)
            if (filters.transaction_type is None or t.transaction_type == filters.transaction_type)
            and (filters.container_id is None or t.container_id == filters.container_id)
            and (filters.start_date is None or t.created_at >= filters.start_date)
            and (filters.end_date is None or t.created_at <= filters.end_date)
        ]
        matches.reverse()
        return matches[filters.offset:filters.offset + filters.limit]

    async def for_container(self, owner_id: uuid.UUID, container_id: uuid.UUID) -> list[Transaction]:
        return [t for t in self._visible(owner_id) if t.container_id == container_id]

    async def summarize(
        self,
        owner_id: uuid.UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TransactionSummary:
        start_date, end_date = as_utc(start_date), as_utc(end_date)
        entries = [
            t for t in self._visible(owner_id)
            if (start_date is None or t.created_at >= start_date)
            and (end_date is None or t.created_at <= end_date)
        ]
        counts = Counter(t.transaction_type for t in entries)
        return TransactionSummary(
            total_transactions=len(entries),
            by_type=[
                TransactionTypeCount(transaction_type=t_type, count=count)
                for t_type, count in counts.most_common()
            ],
            total_volume_gallons=sum((t.volume_gallons for t in entries), ZERO),
            total_proof_gallons=sum((t.proof_gallons for t in entries), ZERO),
            recent=list(reversed(entries))[:RECENT_LIMIT],
        )


class InMemoryContainerKindRepository(ContainerKindRepository):

    def __init__(self, uow: "InMemoryUnitOfWork") -> None:
        self._uow = uow
        self._store = uow.store

    def _current(self, kind_id: uuid.UUID) -> Optional[ContainerKind]:
        return self._uow.staged_kinds.get(kind_id) or self._store.kinds.get(kind_id)

    async def get(self, kind_id: uuid.UUID, owner_id: uuid.UUID) -> ContainerKind:
        kind = self._current(kind_id)
        if kind is None or kind.owner_id != owner_id:
            raise NotFoundError(
                f"Container kind {kind_id} not found",
                code="NF_CONTAINER_KIND",
                details={"kind_id": kind_id},
            )
        return kind

    async def capacity_gallons(self, kind_id: uuid.UUID) -> Optional[Decimal]:
        kind = self._current(kind_id)
        return kind.capacity_gallons if kind else None

    async def list(self, owner_id: uuid.UUID) -> list[ContainerKind]:
        kinds = {**self._store.kinds, **self._uow.staged_kinds}
        return sorted(
            (k for k in kinds.values() if k.owner_id == owner_id),
            key=lambda k: k.name,
        )

    async def create(self, kind: ContainerKind) -> ContainerKind:
        self._uow.staged_kinds[kind.id] = kind
        return kind


# =============================================================================
# UNIT OF WORK
# =============================================================================

class InMemoryUnitOfWork(UnitOfWork):
    """
    Staged writes over an InMemoryStore.

    commit() applies everything without yielding to the event loop, so
    no other task ever observes a half-applied operation.
    """

    def __init__(self, store: InMemoryStore, lock_timeout: float = 5.0) -> None:
        self.store = store
        self.lock_timeout = lock_timeout

        self.staged_containers: dict[uuid.UUID, Optional[Container]] = {}
        self.staged_transactions: list[Transaction] = []
        self.staged_kinds: dict[uuid.UUID, ContainerKind] = {}
        self._held: dict[uuid.UUID, asyncio.Lock] = {}

        self.containers = InMemoryContainerRepository(self)
        self.ledger = InMemoryLedgerRepository(self)
        self.kinds = InMemoryContainerKindRepository(self)

    async def acquire(self, container_id: uuid.UUID) -> None:
        if container_id in self._held:
            return
        lock = self.store.lock_for(container_id)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.lock_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Lock timeout on container {container_id} after {self.lock_timeout}s")
            raise ConflictError(
                f"Container {container_id} is locked by another operation",
                details={"container_id": container_id, "timeout_seconds": self.lock_timeout},
            )
        self._held[container_id] = lock

    def _release(self) -> None:
        for container_id, lock in reversed(list(self._held.items())):
            lock.release()
            self.store.discard_lock(container_id)
        self._held.clear()

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.rollback()
        finally:
            self._release()

    async def commit(self) -> None:
        for container_id, container in self.staged_containers.items():
            if container is None:
                self.store.containers.pop(container_id, None)
            else:
                self.store.containers[container_id] = container
        self.store.kinds.update(self.staged_kinds)
        self.store.transactions.extend(self.staged_transactions)
        self._clear()

    async def rollback(self) -> None:
        if self.staged_containers or self.staged_transactions or self.staged_kinds:
            logger.debug("Discarding uncommitted in-memory writes")
        self._clear()

    def _clear(self) -> None:
        self.staged_containers = {}
        self.staged_transactions = []
        self.staged_kinds = {}

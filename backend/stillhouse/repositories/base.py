"""
Stillhouse Ledger - Repository Interfaces

Abstract storage contracts the engine is written against. The caller
builds a unit-of-work factory and hands it to the engine; the engine
never instantiates storage itself.

RULE: One operation = one unit of work.
      Container writes and ledger appends commit together or not at all.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence

from stillhouse.models.container import Container, ContainerKind
from stillhouse.models.transaction import Transaction, TransactionFilter, TransactionSummary


def lock_order(container_ids: Sequence[uuid.UUID]) -> list[uuid.UUID]:
    """Global lock acquisition order: ascending id, duplicates removed."""
    return sorted(set(container_ids), key=str)


class ContainerRepository(ABC):
    """Container storage scoped by owner."""

    @abstractmethod
    async def get(self, container_id: uuid.UUID, owner_id: uuid.UUID) -> Container:
        """Read one container. Raises NotFoundError."""
        pass

    @abstractmethod
    async def get_for_update(
        self,
        owner_id: uuid.UUID,
        container_ids: Sequence[uuid.UUID],
    ) -> dict[uuid.UUID, Container]:
        """
        Lock containers for the rest of the unit of work and read them.

        Locks are taken in lock_order(). Raises NotFoundError if any id is
        missing, ConflictError if a lock cannot be had in time.
        """
        pass

    @abstractmethod
    async def list(self, owner_id: uuid.UUID) -> list[Container]:
        pass

    @abstractmethod
    async def create(self, container: Container) -> Container:
        pass

    @abstractmethod
    async def update(
        self,
        container_id: uuid.UUID,
        owner_id: uuid.UUID,
        fields: dict[str, Any],
    ) -> Container:
        pass

    @abstractmethod
    async def delete(self, container_id: uuid.UUID, owner_id: uuid.UUID) -> None:
        pass


class LedgerRepository(ABC):
    """Append-only transaction storage. There is no update and no delete."""

    @abstractmethod
    async def append(self, transaction: Transaction) -> Transaction:
        """Store an entry; returns it with id and created_at assigned."""
        pass

    @abstractmethod
    async def get(self, transaction_id: uuid.UUID, owner_id: uuid.UUID) -> Transaction:
        """Raises NotFoundError."""
        pass

    @abstractmethod
    async def query(self, owner_id: uuid.UUID, filters: TransactionFilter) -> list[Transaction]:
        """Newest first."""
        pass

    @abstractmethod
    async def for_container(self, owner_id: uuid.UUID, container_id: uuid.UUID) -> list[Transaction]:
        """Full history of one container, oldest first."""
        pass

    @abstractmethod
    async def summarize(
        self,
        owner_id: uuid.UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> TransactionSummary:
        pass


class ContainerKindRepository(ABC):
    """Container kind lookup."""

    @abstractmethod
    async def get(self, kind_id: uuid.UUID, owner_id: uuid.UUID) -> ContainerKind:
        """Raises NotFoundError."""
        pass

    @abstractmethod
    async def capacity_gallons(self, kind_id: uuid.UUID) -> Optional[Decimal]:
        """Capacity in wine gallons, None when the kind has no limit or is unknown."""
        pass

    @abstractmethod
    async def list(self, owner_id: uuid.UUID) -> list[ContainerKind]:
        pass

    @abstractmethod
    async def create(self, kind: ContainerKind) -> ContainerKind:
        pass


class UnitOfWork(ABC):
    """
    One serializable transaction against the backing store.

    Usage:
        async with uow_factory() as uow:
            ...
            await uow.commit()

    Leaving the block without commit() (or through an exception) discards
    every write made inside it and releases all locks.
    """

    containers: ContainerRepository
    ledger: LedgerRepository
    kinds: ContainerKindRepository

    @abstractmethod
    async def __aenter__(self) -> "UnitOfWork":
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc, tb) -> None:
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass

"""Storage contracts and their in-memory and SQLAlchemy implementations."""

from stillhouse.repositories.base import (
    ContainerKindRepository,
    ContainerRepository,
    LedgerRepository,
    UnitOfWork,
    lock_order,
)
from stillhouse.repositories.memory import InMemoryStore, InMemoryUnitOfWork

__all__ = [
    "ContainerKindRepository",
    "ContainerRepository",
    "InMemoryStore",
    "InMemoryUnitOfWork",
    "LedgerRepository",
    "UnitOfWork",
    "lock_order",
]

"""Shared fixtures: an in-memory store, seeded kinds and containers."""

import uuid
from decimal import Decimal
from typing import Optional

import pytest

from stillhouse.models.container import Container, ContainerKind, ContainerType, derive_status
from stillhouse.repositories.memory import InMemoryStore
from stillhouse.services import ContainerKindService, LedgerService, OperationEngine


LOCK_TIMEOUT = 0.2


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    return lambda: store.unit_of_work(lock_timeout=LOCK_TIMEOUT)


@pytest.fixture
def engine(uow_factory) -> OperationEngine:
    return OperationEngine(uow_factory)


@pytest.fixture
def ledger(uow_factory) -> LedgerService:
    return LedgerService(uow_factory, tolerance=Decimal("0.01"))


@pytest.fixture
def kind_service(uow_factory) -> ContainerKindService:
    return ContainerKindService(uow_factory)


def add_kind(
    store: InMemoryStore,
    owner_id: uuid.UUID,
    capacity: Optional[str],
    name: str = "Barrel",
    tare: Optional[str] = "120",
) -> ContainerKind:
    kind = ContainerKind(
        owner_id=owner_id,
        name=name,
        container_type=ContainerType.WOODEN_BARREL,
        capacity_gallons=capacity,
        tare_weight=tare,
    )
    store.kinds[kind.id] = kind
    return kind


def add_container(
    store: InMemoryStore,
    owner_id: uuid.UUID,
    kind: ContainerKind,
    weight: str = "0",
    proof: Optional[str] = None,
    **fields,
) -> Container:
    """Put a container straight into committed state, bypassing the ledger."""
    net_weight = Decimal(weight)
    container = Container(
        owner_id=owner_id,
        kind_id=kind.id,
        net_weight=net_weight,
        proof=proof,
        status=fields.pop("status", derive_status(net_weight)),
        **fields,
    )
    store.containers[container.id] = container
    return container


@pytest.fixture
def tank_kind(store, owner_id) -> ContainerKind:
    """Large enough never to hit capacity in ordinary tests."""
    return add_kind(store, owner_id, capacity="10000", name="Tank", tare="650")


@pytest.fixture
def small_kind(store, owner_id) -> ContainerKind:
    return add_kind(store, owner_id, capacity="50", name="50 Gallon Drum", tare="37")

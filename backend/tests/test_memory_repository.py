"""
Stillhouse Ledger - Unit of Work & Concurrency Tests
Staged writes, rollback, lock ordering and lock timeouts.
"""

import asyncio
import uuid
from decimal import Decimal

import pytest

from conftest import add_container
from stillhouse.conversion import gallons_to_weight
from stillhouse.core.errors import (
    CapacityExceededError,
    ConflictError,
    InvalidProofTransitionError,
    NotFoundError,
)
from stillhouse.models.transaction import Transaction, TransactionType
from stillhouse.repositories.base import lock_order


class TestLockOrder:
    """Tests for the global lock acquisition order."""

    def test_sorted_by_string_form_and_deduplicated(self):
        ids = [uuid.uuid4() for _ in range(5)]
        ordered = lock_order(ids + ids[:2])
        assert ordered == sorted(ids, key=str)

    def test_argument_order_irrelevant(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert lock_order([a, b]) == lock_order([b, a])


class TestUnitOfWork:
    """Tests for staged writes and rollback."""

    @pytest.mark.asyncio
    async def test_uncommitted_writes_discarded(self, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")

        async with store.unit_of_work() as uow:
            await uow.containers.update(container.id, owner_id, {"net_weight": Decimal("5")})
            await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=TransactionType.SAMPLE_ADJUST,
                container_id=container.id,
            ))
            # visible inside the unit of work
            assert (await uow.containers.get(container.id, owner_id)).net_weight == Decimal("5")

        assert store.containers[container.id].net_weight == Decimal("100")
        assert store.transactions == []

    @pytest.mark.asyncio
    async def test_staged_writes_invisible_to_other_units(self, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")

        async with store.unit_of_work() as writer:
            await writer.containers.update(container.id, owner_id, {"net_weight": Decimal("5")})
            async with store.unit_of_work() as reader:
                assert (await reader.containers.get(container.id, owner_id)).net_weight == Decimal("100")
            await writer.commit()

        assert store.containers[container.id].net_weight == Decimal("5")

    @pytest.mark.asyncio
    async def test_exception_rolls_back(self, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")

        with pytest.raises(RuntimeError):
            async with store.unit_of_work() as uow:
                await uow.containers.delete(container.id, owner_id)
                raise RuntimeError("boom")

        assert container.id in store.containers

    @pytest.mark.asyncio
    async def test_append_assigns_id_and_timestamp(self, store, owner_id):
        async with store.unit_of_work() as uow:
            stored = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=TransactionType.PRODUCTION,
            ))
            await uow.commit()

        assert stored.id is not None
        assert stored.created_at is not None
        assert store.transactions == [stored]

    @pytest.mark.asyncio
    async def test_returned_containers_are_copies(self, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")

        async with store.unit_of_work() as uow:
            fetched = await uow.containers.get(container.id, owner_id)
        fetched.net_weight = Decimal("1")

        assert store.containers[container.id].net_weight == Decimal("100")


class TestLocking:
    """Tests for container locks under concurrent operations."""

    @pytest.mark.asyncio
    async def test_lock_timeout_surfaces_as_conflict(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")
        before = store.containers[container.id].model_dump()

        async with store.unit_of_work() as holder:
            await holder.containers.get_for_update(owner_id, [container.id])

            with pytest.raises(ConflictError) as exc:
                await engine.adjust_contents(
                    owner_id, container_id=container.id, method="add", weight_amount_lbs="10"
                )

        assert exc.value.code == "CONFLICT_LOCK_TIMEOUT"
        assert exc.value.is_retryable
        assert store.containers[container.id].model_dump() == before
        assert store.transactions == []

    @pytest.mark.asyncio
    async def test_locks_released_after_failure(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="120")

        with pytest.raises(InvalidProofTransitionError):
            await engine.proof_down_spirit(owner_id, container_id=container.id, target_proof="150")

        result = await engine.proof_down_spirit(owner_id, container_id=container.id, target_proof="100")
        assert result.container.proof == Decimal("100")

    @pytest.mark.asyncio
    async def test_lock_dropped_after_delete(self, engine, store, owner_id, tank_kind):
        kept = add_container(store, owner_id, tank_kind, weight="100", proof="100")
        deleted = add_container(store, owner_id, tank_kind)

        await engine.adjust_contents(owner_id, container_id=kept.id, method="add", weight_amount_lbs="1")
        await engine.delete_container(owner_id, deleted.id)

        assert kept.id in store._locks
        assert deleted.id not in store._locks

    @pytest.mark.asyncio
    async def test_waiter_on_deleted_container_gets_not_found(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind)

        async with store.unit_of_work() as holder:
            await holder.containers.get_for_update(owner_id, [container.id])
            waiter = asyncio.ensure_future(
                engine.edit_container(owner_id, container.id, name="late")
            )
            await asyncio.sleep(0)
            await holder.containers.delete(container.id, owner_id)
            await holder.commit()

        with pytest.raises(NotFoundError):
            await waiter
        assert container.id not in store._locks

    @pytest.mark.asyncio
    async def test_concurrent_adjusts_do_not_lose_updates(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")

        await asyncio.gather(*[
            engine.adjust_contents(owner_id, container_id=container.id, method="add", weight_amount_lbs="1")
            for _ in range(20)
        ])

        assert store.containers[container.id].net_weight == Decimal("120")
        assert len(store.transactions) == 20

    @pytest.mark.asyncio
    async def test_opposite_transfers_do_not_deadlock(self, engine, store, owner_id, tank_kind):
        a = add_container(store, owner_id, tank_kind, weight="500", proof="100")
        b = add_container(store, owner_id, tank_kind, weight="500", proof="100")

        await asyncio.wait_for(asyncio.gather(
            engine.transfer_spirit(owner_id, source_id=a.id, destination_id=b.id, weight_amount_lbs="50"),
            engine.transfer_spirit(owner_id, source_id=b.id, destination_id=a.id, weight_amount_lbs="20"),
        ), timeout=5)

        assert store.containers[a.id].net_weight == Decimal("470")
        assert store.containers[b.id].net_weight == Decimal("530")
        assert len(store.transactions) == 4

    @pytest.mark.asyncio
    async def test_capacity_checked_against_locked_state(self, engine, store, owner_id, tank_kind, small_kind):
        """Two transfers that each fit alone cannot both land in the destination."""
        ten_gallons = str(gallons_to_weight(100, 10))
        first = add_container(store, owner_id, tank_kind, weight=ten_gallons, proof="100")
        second = add_container(store, owner_id, tank_kind, weight=ten_gallons, proof="100")
        destination = add_container(
            store, owner_id, small_kind, weight=str(gallons_to_weight(100, 35)), proof="100"
        )

        results = await asyncio.gather(
            engine.transfer_spirit(owner_id, source_id=first.id, destination_id=destination.id, weight_amount_lbs=ten_gallons),
            engine.transfer_spirit(owner_id, source_id=second.id, destination_id=destination.id, weight_amount_lbs=ten_gallons),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], CapacityExceededError)
        assert store.containers[destination.id].net_weight == gallons_to_weight(100, 45)
        assert len(store.transactions) == 2

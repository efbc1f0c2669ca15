"""
Stillhouse Ledger - Physical Operation Tests

For every operation:
- Happy path and its ledger entries
- Typed rejection leaves containers and ledger untouched
"""

import uuid
from decimal import Decimal

import pytest

from conftest import add_container, add_kind
from stillhouse.conversion import gallons_to_weight, weight_to_gallons
from stillhouse.core.errors import (
    CapacityExceededError,
    InvalidProofTransitionError,
    NotFoundError,
    ValidationError,
)
from stillhouse.models.container import AccountType, ContainerStatus
from stillhouse.models.transaction import TransactionType
from stillhouse.repositories.memory import InMemoryLedgerRepository


TOLERANCE = Decimal("0.01")


def snapshot(store):
    """Committed state, for asserting nothing changed."""
    return (
        {cid: c.model_dump() for cid, c in store.containers.items()},
        len(store.transactions),
    )


class TestTransfer:
    """Tests for transfer_spirit."""

    @pytest.mark.asyncio
    async def test_transfer_conserves_weight_and_proof(self, engine, store, owner_id, tank_kind):
        product_id = uuid.uuid4()
        source = add_container(store, owner_id, tank_kind, weight="1000", proof="120", product_id=product_id)
        destination = add_container(store, owner_id, tank_kind)

        result = await engine.transfer_spirit(
            owner_id,
            source_id=source.id,
            destination_id=destination.id,
            weight_amount_lbs="100",
        )

        assert result.source.net_weight == Decimal("900")
        assert result.source.status == ContainerStatus.FILLED
        assert result.destination.net_weight == Decimal("100")
        assert result.destination.proof == Decimal("120")
        assert result.destination.status == ContainerStatus.FILLED
        assert result.destination.product_id == product_id

        assert store.containers[source.id].net_weight == Decimal("900")
        assert store.containers[destination.id].net_weight == Decimal("100")

    @pytest.mark.asyncio
    async def test_operator_status_on_destination_kept(self, engine, store, owner_id, tank_kind):
        source = add_container(store, owner_id, tank_kind, weight="1000", proof="120")
        destination = add_container(store, owner_id, tank_kind, status=ContainerStatus.MAINTENANCE)

        result = await engine.transfer_spirit(
            owner_id, source_id=source.id, destination_id=destination.id, weight_amount_lbs="100"
        )

        assert result.destination.net_weight == Decimal("100")
        assert result.destination.status == ContainerStatus.MAINTENANCE

    @pytest.mark.asyncio
    async def test_transfer_writes_two_mirrored_entries(self, engine, store, owner_id, tank_kind):
        source = add_container(store, owner_id, tank_kind, weight="1000", proof="120")
        destination = add_container(store, owner_id, tank_kind)

        result = await engine.transfer_spirit(
            owner_id, source_id=source.id, destination_id=destination.id, weight_amount_lbs="100"
        )

        assert len(store.transactions) == 2
        out_entry, in_entry = result.transactions
        assert out_entry.transaction_type == TransactionType.TRANSFER_OUT
        assert out_entry.container_id == source.id
        assert in_entry.transaction_type == TransactionType.TRANSFER_IN
        assert in_entry.container_id == destination.id
        assert out_entry.volume_gallons == -in_entry.volume_gallons
        assert out_entry.proof_gallons == -in_entry.proof_gallons
        assert in_entry.volume_gallons > 0

        expected_wg = weight_to_gallons(120, 100).wine_gallons
        assert abs(in_entry.volume_gallons - expected_wg) <= TOLERANCE
        assert abs(in_entry.proof_gallons - expected_wg * Decimal("1.2")) <= TOLERANCE

    @pytest.mark.asyncio
    async def test_transfer_blends_proof(self, engine, store, owner_id, tank_kind):
        source = add_container(store, owner_id, tank_kind, weight="100", proof="120")
        destination = add_container(store, owner_id, tank_kind, weight="300", proof="80")

        result = await engine.transfer_spirit(
            owner_id, source_id=source.id, destination_id=destination.id, weight_amount_lbs="100"
        )

        # (300*80 + 100*120) / 400
        assert result.destination.proof == Decimal("90")
        assert result.source.net_weight == 0
        assert result.source.status == ContainerStatus.EMPTY

    @pytest.mark.asyncio
    async def test_overdraw_floors_source_at_zero(self, engine, store, owner_id, tank_kind):
        source = add_container(store, owner_id, tank_kind, weight="50", proof="100")
        destination = add_container(store, owner_id, tank_kind)

        result = await engine.transfer_spirit(
            owner_id, source_id=source.id, destination_id=destination.id, weight_amount_lbs="80"
        )

        assert result.source.net_weight == 0
        assert result.source.status == ContainerStatus.EMPTY
        assert result.destination.net_weight == Decimal("80")

    @pytest.mark.asyncio
    async def test_explicit_wine_gallons_used_for_ledger(self, engine, store, owner_id, tank_kind):
        source = add_container(store, owner_id, tank_kind, weight="1000", proof="100")
        destination = add_container(store, owner_id, tank_kind)

        result = await engine.transfer_spirit(
            owner_id,
            source_id=source.id,
            destination_id=destination.id,
            weight_amount_lbs="100",
            wine_gallons_amount="12.5",
        )

        assert result.transactions[1].volume_gallons == Decimal("12.5")
        assert result.transactions[1].proof_gallons == Decimal("12.5")

    @pytest.mark.asyncio
    async def test_capacity_exceeded_leaves_everything_unchanged(self, engine, store, owner_id, tank_kind, small_kind):
        source = add_container(store, owner_id, tank_kind, weight="1000", proof="100")
        destination = add_container(
            store, owner_id, small_kind, weight=str(gallons_to_weight(100, 45)), proof="100"
        )
        before = snapshot(store)

        with pytest.raises(CapacityExceededError) as exc:
            await engine.transfer_spirit(
                owner_id,
                source_id=source.id,
                destination_id=destination.id,
                weight_amount_lbs=str(gallons_to_weight(100, 10)),
            )

        assert exc.value.code == "CAP_EXCEEDED"
        assert exc.value.details["capacity_gallons"] == Decimal("50")
        assert snapshot(store) == before

    @pytest.mark.asyncio
    async def test_same_source_and_destination_rejected(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")

        with pytest.raises(ValidationError) as exc:
            await engine.transfer_spirit(
                owner_id, source_id=container.id, destination_id=container.id, weight_amount_lbs="10"
            )
        assert exc.value.code == "VAL_INVALID_STATE"

    @pytest.mark.asyncio
    async def test_zero_weight_rejected(self, engine, store, owner_id, tank_kind):
        source = add_container(store, owner_id, tank_kind, weight="100", proof="100")
        destination = add_container(store, owner_id, tank_kind)

        with pytest.raises(ValidationError) as exc:
            await engine.transfer_spirit(
                owner_id, source_id=source.id, destination_id=destination.id, weight_amount_lbs="0"
            )
        assert exc.value.code == "VAL_OUT_OF_RANGE"

    @pytest.mark.asyncio
    async def test_missing_destination_is_not_found(self, engine, store, owner_id, tank_kind):
        source = add_container(store, owner_id, tank_kind, weight="100", proof="100")
        before = snapshot(store)

        with pytest.raises(NotFoundError):
            await engine.transfer_spirit(
                owner_id, source_id=source.id, destination_id=uuid.uuid4(), weight_amount_lbs="10"
            )
        assert snapshot(store) == before

    @pytest.mark.asyncio
    async def test_other_owners_container_is_not_found(self, engine, store, owner_id, tank_kind):
        stranger = uuid.uuid4()
        source = add_container(store, owner_id, tank_kind, weight="100", proof="100")
        foreign = add_container(store, stranger, tank_kind)

        with pytest.raises(NotFoundError) as exc:
            await engine.transfer_spirit(
                owner_id, source_id=source.id, destination_id=foreign.id, weight_amount_lbs="10"
            )
        assert exc.value.code == "NF_CONTAINER"

    @pytest.mark.asyncio
    async def test_source_without_proof_needs_explicit_proof(self, engine, store, owner_id, tank_kind):
        source = add_container(store, owner_id, tank_kind, weight="100")
        destination = add_container(store, owner_id, tank_kind)

        with pytest.raises(ValidationError) as exc:
            await engine.transfer_spirit(
                owner_id, source_id=source.id, destination_id=destination.id, weight_amount_lbs="10"
            )
        assert exc.value.code == "VAL_MISSING_FIELD"

        result = await engine.transfer_spirit(
            owner_id, source_id=source.id, destination_id=destination.id,
            weight_amount_lbs="10", proof="90",
        )
        assert result.destination.proof == Decimal("90")

    @pytest.mark.asyncio
    async def test_failed_ledger_append_rolls_back_container_writes(
        self, engine, store, owner_id, tank_kind, monkeypatch
    ):
        source = add_container(store, owner_id, tank_kind, weight="1000", proof="120")
        destination = add_container(store, owner_id, tank_kind)
        before = snapshot(store)

        original_append = InMemoryLedgerRepository.append

        async def failing_append(self, transaction):
            if transaction.transaction_type == TransactionType.TRANSFER_IN:
                raise RuntimeError("ledger unavailable")
            return await original_append(self, transaction)

        monkeypatch.setattr(InMemoryLedgerRepository, "append", failing_append)

        with pytest.raises(RuntimeError):
            await engine.transfer_spirit(
                owner_id, source_id=source.id, destination_id=destination.id, weight_amount_lbs="100"
            )

        assert snapshot(store) == before


class TestProofDown:
    """Tests for proof_down_spirit."""

    @pytest.mark.asyncio
    async def test_proof_gallons_conserved(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="1000", proof="120")
        _, pg_before = weight_to_gallons(120, 1000)

        result = await engine.proof_down_spirit(owner_id, container_id=container.id, target_proof="80")

        updated = result.container
        assert updated.proof == Decimal("80")
        assert updated.net_weight > Decimal("1000")
        _, pg_after = weight_to_gallons(updated.proof, updated.net_weight)
        assert abs(pg_after - pg_before) < TOLERANCE

    @pytest.mark.asyncio
    async def test_ledger_entry(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="1000", proof="120")

        result = await engine.proof_down_spirit(owner_id, container_id=container.id, target_proof="80")

        (entry,) = result.transactions
        assert entry.transaction_type == TransactionType.PROOF_DOWN
        assert entry.proof_gallons == 0
        assert entry.proof == Decimal("80")
        old_wg = weight_to_gallons(120, 1000).wine_gallons
        new_wg = weight_to_gallons(80, result.container.net_weight).wine_gallons
        assert abs(entry.volume_gallons - (new_wg - old_wg)) < TOLERANCE
        assert "120 -> 80" in entry.notes
        assert "water" in entry.notes

    @pytest.mark.asyncio
    async def test_higher_target_rejected_and_unchanged(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="1000", proof="120")
        before = snapshot(store)

        with pytest.raises(InvalidProofTransitionError) as exc:
            await engine.proof_down_spirit(owner_id, container_id=container.id, target_proof="130")

        assert exc.value.code == "PROOF_TRANSITION"
        assert snapshot(store) == before

    @pytest.mark.asyncio
    async def test_equal_target_rejected(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="1000", proof="120")

        with pytest.raises(InvalidProofTransitionError):
            await engine.proof_down_spirit(owner_id, container_id=container.id, target_proof="120")

    @pytest.mark.asyncio
    async def test_container_without_proof_rejected(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind)

        with pytest.raises(InvalidProofTransitionError):
            await engine.proof_down_spirit(owner_id, container_id=container.id, target_proof="80")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("target,code", [
        ("0", "VAL_OUT_OF_RANGE"),
        ("250", "VAL_OUT_OF_RANGE"),
        ("eighty", "VAL_INVALID_NUMBER"),
    ])
    async def test_invalid_target(self, engine, store, owner_id, tank_kind, target, code):
        container = add_container(store, owner_id, tank_kind, weight="1000", proof="120")

        with pytest.raises(ValidationError) as exc:
            await engine.proof_down_spirit(owner_id, container_id=container.id, target_proof=target)
        assert exc.value.code == code


class TestAdjust:
    """Tests for adjust_contents."""

    @pytest.mark.asyncio
    async def test_add(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")

        result = await engine.adjust_contents(
            owner_id, container_id=container.id, method="add", weight_amount_lbs="77.8007"
        )

        assert result.container.net_weight == Decimal("177.8007")
        (entry,) = result.transactions
        assert entry.transaction_type == TransactionType.ADJUST_CONTAINER_ADD
        assert entry.volume_gallons == Decimal("10")
        assert entry.proof_gallons == Decimal("10")

    @pytest.mark.asyncio
    async def test_remove_floors_at_zero(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="50", proof="120")

        result = await engine.adjust_contents(
            owner_id, container_id=container.id, method="remove", weight_amount_lbs="60"
        )

        assert result.container.net_weight == 0
        assert result.container.status == ContainerStatus.EMPTY
        (entry,) = result.transactions
        assert entry.transaction_type == TransactionType.ADJUST_CONTAINER_REMOVE
        assert entry.volume_gallons < 0
        assert entry.proof_gallons == entry.volume_gallons * Decimal("120") / Decimal("100")

    @pytest.mark.asyncio
    async def test_add_over_capacity_rejected(self, engine, store, owner_id, small_kind):
        container = add_container(
            store, owner_id, small_kind, weight=str(gallons_to_weight(100, 45)), proof="100"
        )
        before = snapshot(store)

        with pytest.raises(CapacityExceededError):
            await engine.adjust_contents(
                owner_id,
                container_id=container.id,
                method="add",
                weight_amount_lbs=str(gallons_to_weight(100, 10)),
                wine_gallons_amount="10",
            )

        assert snapshot(store) == before

    @pytest.mark.asyncio
    async def test_add_up_to_capacity_allowed(self, engine, store, owner_id, small_kind):
        container = add_container(
            store, owner_id, small_kind, weight=str(gallons_to_weight(100, 45)), proof="100"
        )

        result = await engine.adjust_contents(
            owner_id,
            container_id=container.id,
            method="add",
            weight_amount_lbs=str(gallons_to_weight(100, 5)),
            wine_gallons_amount="5",
        )
        assert result.container.net_weight == gallons_to_weight(100, 50)

    @pytest.mark.asyncio
    async def test_unlimited_kind_never_over_capacity(self, engine, store, owner_id):
        unlimited = add_kind(store, owner_id, capacity=None, name="Still")
        container = add_container(store, owner_id, unlimited, weight="100000", proof="100")

        result = await engine.adjust_contents(
            owner_id, container_id=container.id, method="add", weight_amount_lbs="100000"
        )
        assert result.container.net_weight == Decimal("200000")

    @pytest.mark.asyncio
    async def test_remove_is_not_capacity_checked(self, engine, store, owner_id, small_kind):
        container = add_container(
            store, owner_id, small_kind, weight=str(gallons_to_weight(100, 60)), proof="100"
        )

        result = await engine.adjust_contents(
            owner_id, container_id=container.id, method="remove", weight_amount_lbs="10"
        )
        assert result.transactions[0].volume_gallons < 0

    @pytest.mark.asyncio
    async def test_add_to_container_without_proof_rejected(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind)
        before = snapshot(store)

        with pytest.raises(ValidationError) as exc:
            await engine.adjust_contents(
                owner_id, container_id=container.id, method="add", weight_amount_lbs="100"
            )

        assert exc.value.code == "VAL_MISSING_FIELD"
        assert snapshot(store) == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params,code", [
        ({"weight_amount_lbs": "-5"}, "VAL_OUT_OF_RANGE"),
        ({"weight_amount_lbs": 5.5}, "VAL_INVALID_NUMBER"),
        ({}, "VAL_MISSING_FIELD"),
    ])
    async def test_invalid_input(self, engine, store, owner_id, tank_kind, params, code):
        container = add_container(store, owner_id, tank_kind, weight="100", proof="100")
        before = snapshot(store)

        with pytest.raises(ValidationError) as exc:
            await engine.adjust_contents(owner_id, container_id=container.id, method="add", **params)

        assert exc.value.code == code
        assert snapshot(store) == before


class TestBottle:
    """Tests for bottle_spirit."""

    @pytest.mark.asyncio
    async def test_bottle_and_empty(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="500", proof="100")

        result = await engine.bottle_spirit(
            owner_id,
            container_id=container.id,
            bottle_size_liters="0.75",
            number_of_bottles=24,
            remainder_action="empty",
            remainder_weight_lbs="0",
        )

        assert result.container.net_weight == 0
        assert result.container.status == ContainerStatus.EMPTY
        (entry,) = result.transactions
        assert entry.transaction_type == TransactionType.BOTTLE_EMPTY
        assert abs(entry.volume_gallons - Decimal("-4.755")) < TOLERANCE
        assert abs(entry.proof_gallons - Decimal("-4.755")) < TOLERANCE
        assert "24 x 0.75L" in entry.notes

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action,expected", [
        ("keep", TransactionType.BOTTLE_KEEP),
        ("loss", TransactionType.BOTTLING_LOSS),
        ("gain", TransactionType.BOTTLING_GAIN),
    ])
    async def test_remainder_action_selects_type(self, engine, store, owner_id, tank_kind, action, expected):
        container = add_container(store, owner_id, tank_kind, weight="500", proof="80")

        result = await engine.bottle_spirit(
            owner_id,
            container_id=container.id,
            bottle_size_liters="0.75",
            number_of_bottles=12,
            remainder_action=action,
            remainder_weight_lbs="400",
        )

        assert result.transactions[0].transaction_type == expected
        assert result.container.net_weight == Decimal("400")
        assert result.container.status == ContainerStatus.FILLED
        assert result.transactions[0].proof_gallons == result.transactions[0].volume_gallons * Decimal("0.8")

    @pytest.mark.asyncio
    async def test_zero_bottles_rejected(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="500", proof="100")

        with pytest.raises(ValidationError):
            await engine.bottle_spirit(
                owner_id,
                container_id=container.id,
                bottle_size_liters="0.75",
                number_of_bottles=0,
                remainder_action="keep",
                remainder_weight_lbs="500",
            )

    @pytest.mark.asyncio
    async def test_unknown_remainder_action_rejected(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="500", proof="100")

        with pytest.raises(ValidationError):
            await engine.bottle_spirit(
                owner_id,
                container_id=container.id,
                bottle_size_liters="0.75",
                number_of_bottles=6,
                remainder_action="spill",
                remainder_weight_lbs="400",
            )


class TestChangeAccount:
    """Tests for change_account."""

    @pytest.mark.asyncio
    async def test_reclassifies_and_logs(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="500", proof="100")

        result = await engine.change_account(owner_id, container_id=container.id, new_account="bottling")

        assert result.container.account == AccountType.BOTTLING
        assert result.container.net_weight == Decimal("500")
        (entry,) = result.transactions
        assert entry.transaction_type == TransactionType.CHANGE_ACCOUNT
        assert entry.volume_gallons == 0
        assert entry.proof_gallons == 0
        assert entry.notes == "account: storage -> bottling"

    @pytest.mark.asyncio
    async def test_same_account_is_noop(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind, weight="500", proof="100")

        result = await engine.change_account(owner_id, container_id=container.id, new_account="storage")

        assert result.transactions == []
        assert store.transactions == []

    @pytest.mark.asyncio
    async def test_unknown_account_rejected(self, engine, store, owner_id, tank_kind):
        container = add_container(store, owner_id, tank_kind)

        with pytest.raises(ValidationError):
            await engine.change_account(owner_id, container_id=container.id, new_account="bonded")

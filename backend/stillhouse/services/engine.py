"""
Stillhouse Ledger - Operation Engine
====================================

Every quantity-changing operation on a container, and the three lifecycle
operations (create, edit, delete).

Each operation:
    1. Validates its request before touching storage
    2. Locks the containers it writes, in ascending id order
    3. Writes container state and ledger entries in ONE unit of work
    4. Commits, or leaves storage exactly as it was

RULE: The engine never constructs storage. The caller passes a factory
      returning a fresh UnitOfWork per operation.
"""

import functools
import logging
import uuid
from decimal import Decimal
from typing import Any, Callable, Optional

from stillhouse.conversion import (
    bottled_volume_gallons,
    density,
    proof_gallons_for,
    proof_gallons_to_weight,
    weight_to_gallons,
)
from stillhouse.core.errors import (
    CapacityExceededError,
    InvalidProofTransitionError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from stillhouse.core.types import ZERO
from stillhouse.models.container import Container, ContainerStatus, derive_status
from stillhouse.models.operations import (
    AdjustMethod,
    AdjustRequest,
    BottleRequest,
    ChangeAccountRequest,
    ContainerChanges,
    CreateContainerRequest,
    DeleteResult,
    EditResult,
    OperationResult,
    ProofDownRequest,
    RemainderAction,
    TransferRequest,
    TransferResult,
    parse_request,
)
from stillhouse.models.transaction import Transaction, TransactionType
from stillhouse.repositories.base import UnitOfWork
from stillhouse.services.audit import (
    build_change_notes,
    diff_tracked_fields,
    edit_transaction_type,
    format_value,
)

logger = logging.getLogger(__name__)


UnitOfWorkFactory = Callable[[], UnitOfWork]


BOTTLING_TRANSACTION_TYPES = {
    RemainderAction.KEEP: TransactionType.BOTTLE_KEEP,
    RemainderAction.EMPTY: TransactionType.BOTTLE_EMPTY,
    RemainderAction.LOSS: TransactionType.BOTTLING_LOSS,
    RemainderAction.GAIN: TransactionType.BOTTLING_GAIN,
}


def _operation(name: str):
    """Log rejected operations with their error code, then re-raise."""
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self, owner_id, *args, **kwargs):
            try:
                return await fn(self, owner_id, *args, **kwargs)
            except LedgerError as e:
                logger.warning(f"[{name}] rejected for owner {owner_id}: {e.code} {e.message}")
                raise
        return wrapper
    return decorator


def _require_positive(value: Decimal, field: str) -> None:
    if value <= 0:
        raise ValidationError(
            f"{field} must be greater than zero, got {value}",
            code="VAL_OUT_OF_RANGE",
            details={field: value},
        )


class OperationEngine:
    """
    Physical and lifecycle operations over containers and the ledger.

    Usage:
        engine = OperationEngine(lambda: SqlUnitOfWork(session_maker))
        result = await engine.transfer_spirit(owner_id, source_id=..., destination_id=..., weight_amount_lbs="100")
    """

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    # =========================================================================
    # SHARED CHECKS
    # =========================================================================

    async def _check_capacity(
        self,
        uow: UnitOfWork,
        container: Container,
        added_wine_gallons: Decimal,
    ) -> None:
        """Reject if container would exceed its kind capacity. Unlimited kinds pass."""
        capacity = await uow.kinds.capacity_gallons(container.kind_id)
        if capacity is None:
            return
        current = weight_to_gallons(container.working_proof, container.net_weight).wine_gallons
        if current + added_wine_gallons > capacity:
            raise CapacityExceededError(
                f"Container {container.id} holds {current:.2f} of {capacity} wine gallons; "
                f"cannot add {added_wine_gallons:.2f}",
                details={
                    "container_id": container.id,
                    "capacity_gallons": capacity,
                    "current_gallons": current,
                    "requested_gallons": added_wine_gallons,
                },
            )

    async def get_container(self, owner_id: uuid.UUID, container_id: uuid.UUID) -> Container:
        async with self._uow_factory() as uow:
            return await uow.containers.get(container_id, owner_id)

    async def list_containers(self, owner_id: uuid.UUID) -> list[Container]:
        async with self._uow_factory() as uow:
            return await uow.containers.list(owner_id)

    # =========================================================================
    # TRANSFER
    # =========================================================================

    @_operation("transfer")
    async def transfer_spirit(self, owner_id: uuid.UUID, **params: Any) -> TransferResult:
        """
        Move weight_amount_lbs from source to destination.

        Destination proof becomes the weight-weighted blend of both, and
        destination inherits the source's product. Amounts beyond what the
        source holds floor the source at zero.
        """
        request = parse_request(TransferRequest, **params)
        if request.source_id == request.destination_id:
            raise ValidationError(
                "Source and destination must be different containers",
                code="VAL_INVALID_STATE",
                details={"container_id": request.source_id},
            )
        _require_positive(request.weight_amount_lbs, "weight_amount_lbs")
        weight = request.weight_amount_lbs

        async with self._uow_factory() as uow:
            locked = await uow.containers.get_for_update(
                owner_id, [request.source_id, request.destination_id]
            )
            source = locked[request.source_id]
            destination = locked[request.destination_id]

            source_proof = source.proof if source.proof is not None else request.proof
            if source_proof is None:
                raise ValidationError(
                    f"Source container {source.id} has no proof; supply one with the transfer",
                    code="VAL_MISSING_FIELD",
                    details={"source_id": source.id},
                )
            proof = request.proof if request.proof is not None else source_proof
            wine_gallons = request.wine_gallons_amount
            if wine_gallons is None:
                wine_gallons = weight_to_gallons(proof, weight).wine_gallons
            proof_gallons = proof_gallons_for(proof, wine_gallons)

            await self._check_capacity(uow, destination, wine_gallons)

            source_weight = source.net_weight - weight
            if source_weight < 0:
                logger.debug(f"Transfer of {weight} lbs exceeds source {source.id} ({source.net_weight} lbs); flooring at 0")
                source_weight = ZERO
            destination_weight = destination.net_weight + weight
            destination_proof = (
                destination.net_weight * destination.working_proof + weight * source_proof
            ) / destination_weight

            updated_source = await uow.containers.update(source.id, owner_id, {
                "net_weight": source_weight,
                "status": derive_status(source_weight, source.status),
            })
            updated_destination = await uow.containers.update(destination.id, owner_id, {
                "net_weight": destination_weight,
                "proof": destination_proof,
                "status": derive_status(destination_weight, destination.status),
                "product_id": source.product_id,
            })

            notes = request.notes or f"Transfer {weight} lbs ({wine_gallons:.2f} WG) from {source.id} to {destination.id}"
            transfer_out = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=TransactionType.TRANSFER_OUT,
                container_id=source.id,
                product_id=source.product_id,
                proof=proof,
                volume_gallons=-wine_gallons,
                proof_gallons=-proof_gallons,
                temperature_fahrenheit=source.temperature_fahrenheit,
                notes=notes,
            ))
            transfer_in = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=TransactionType.TRANSFER_IN,
                container_id=destination.id,
                product_id=source.product_id,
                proof=proof,
                volume_gallons=wine_gallons,
                proof_gallons=proof_gallons,
                temperature_fahrenheit=destination.temperature_fahrenheit,
                notes=notes,
            ))
            await uow.commit()

        logger.info(
            f"[transfer] {weight} lbs / {wine_gallons:.2f} WG / {proof_gallons:.2f} PG "
            f"{source.id} -> {destination.id}; source now {source_weight} lbs, "
            f"destination now {destination_weight} lbs at {destination_proof:.2f} proof"
        )
        return TransferResult(
            source=updated_source,
            destination=updated_destination,
            transactions=[transfer_out, transfer_in],
        )

    # =========================================================================
    # PROOF DOWN
    # =========================================================================

    @_operation("proof_down")
    async def proof_down_spirit(self, owner_id: uuid.UUID, **params: Any) -> OperationResult:
        """
        Add water to bring a container down to target_proof.

        Proof gallons are conserved: the new weight is the weight of the
        same proof gallons at the target proof.
        """
        request = parse_request(ProofDownRequest, **params)
        target = request.target_proof
        _require_positive(target, "target_proof")

        async with self._uow_factory() as uow:
            container = (await uow.containers.get_for_update(owner_id, [request.container_id]))[request.container_id]

            if container.proof is None:
                raise InvalidProofTransitionError(
                    f"Container {container.id} has no proof to reduce",
                    details={"container_id": container.id, "target_proof": target},
                )
            if target >= container.proof:
                raise InvalidProofTransitionError(
                    f"Target proof {target} must be below current proof {container.proof}",
                    details={
                        "container_id": container.id,
                        "current_proof": container.proof,
                        "target_proof": target,
                    },
                )

            old_weight = container.net_weight
            old_wine_gallons, proof_gallons = weight_to_gallons(container.proof, old_weight)
            new_weight = proof_gallons_to_weight(target, proof_gallons)
            new_wine_gallons = new_weight / density(target)
            water_lbs = new_weight - old_weight
            water_gallons = water_lbs / density(0)

            updated = await uow.containers.update(container.id, owner_id, {
                "proof": target,
                "net_weight": new_weight,
                "status": derive_status(new_weight, container.status),
            })

            summary = (
                f"Proof down {format_value(container.proof)} -> {format_value(target)}; "
                f"weight {old_weight:.2f} -> {new_weight:.2f} lbs; "
                f"added {water_lbs:.2f} lbs ({water_gallons:.2f} gal) water"
            )
            transaction = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=TransactionType.PROOF_DOWN,
                container_id=container.id,
                product_id=container.product_id,
                proof=target,
                volume_gallons=new_wine_gallons - old_wine_gallons,
                proof_gallons=ZERO,
                temperature_fahrenheit=container.temperature_fahrenheit,
                notes=f"{summary}. {request.notes}" if request.notes else summary,
            ))
            await uow.commit()

        logger.info(f"[proof_down] container {container.id}: {summary}; {proof_gallons:.2f} PG conserved")
        return OperationResult(container=updated, transactions=[transaction])

    # =========================================================================
    # ADJUST
    # =========================================================================

    @_operation("adjust")
    async def adjust_contents(self, owner_id: uuid.UUID, **params: Any) -> OperationResult:
        """Add or remove spirit at the container's own proof."""
        request = parse_request(AdjustRequest, **params)
        _require_positive(request.weight_amount_lbs, "weight_amount_lbs")
        weight = request.weight_amount_lbs

        async with self._uow_factory() as uow:
            container = (await uow.containers.get_for_update(owner_id, [request.container_id]))[request.container_id]
            if request.method == AdjustMethod.ADD and container.proof is None:
                raise ValidationError(
                    f"Container {container.id} has no proof; set one before adding spirit",
                    code="VAL_MISSING_FIELD",
                    details={"container_id": container.id},
                )
            proof = container.working_proof

            wine_gallons = request.wine_gallons_amount
            if wine_gallons is None:
                wine_gallons = weight_to_gallons(proof, weight).wine_gallons

            if request.method == AdjustMethod.ADD:
                await self._check_capacity(uow, container, wine_gallons)
                new_weight = container.net_weight + weight
                transaction_type = TransactionType.ADJUST_CONTAINER_ADD
                volume = wine_gallons
            else:
                new_weight = container.net_weight - weight
                if new_weight < 0:
                    logger.debug(f"Removal of {weight} lbs exceeds container {container.id}; flooring at 0")
                    new_weight = ZERO
                transaction_type = TransactionType.ADJUST_CONTAINER_REMOVE
                volume = -wine_gallons

            updated = await uow.containers.update(container.id, owner_id, {
                "net_weight": new_weight,
                "status": derive_status(new_weight, container.status),
            })
            transaction = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=transaction_type,
                container_id=container.id,
                product_id=container.product_id,
                proof=container.proof,
                volume_gallons=volume,
                proof_gallons=proof_gallons_for(proof, volume),
                temperature_fahrenheit=container.temperature_fahrenheit,
                notes=request.notes or f"{request.method.value} {weight} lbs",
            ))
            await uow.commit()

        logger.info(
            f"[adjust] container {container.id} {request.method.value} {weight} lbs "
            f"({wine_gallons:.2f} WG); now {new_weight} lbs"
        )
        return OperationResult(container=updated, transactions=[transaction])

    # =========================================================================
    # BOTTLE
    # =========================================================================

    @_operation("bottle")
    async def bottle_spirit(self, owner_id: uuid.UUID, **params: Any) -> OperationResult:
        """
        Record a bottling run.

        The remainder weight is what the scale says is left; loss or gain
        against the bottled volume is not derived.
        """
        request = parse_request(BottleRequest, **params)
        _require_positive(request.bottle_size_liters, "bottle_size_liters")
        bottled = bottled_volume_gallons(request.bottle_size_liters, request.number_of_bottles)

        async with self._uow_factory() as uow:
            container = (await uow.containers.get_for_update(owner_id, [request.container_id]))[request.container_id]
            remainder = request.remainder_weight_lbs

            updated = await uow.containers.update(container.id, owner_id, {
                "net_weight": remainder,
                "status": derive_status(remainder, container.status),
            })

            summary = (
                f"Bottled {request.number_of_bottles} x {format_value(request.bottle_size_liters)}L "
                f"({bottled:.3f} WG); remainder {request.remainder_action.value}: {remainder} lbs"
            )
            transaction = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=BOTTLING_TRANSACTION_TYPES[request.remainder_action],
                container_id=container.id,
                product_id=container.product_id,
                proof=container.proof,
                volume_gallons=-bottled,
                proof_gallons=-proof_gallons_for(container.working_proof, bottled),
                temperature_fahrenheit=container.temperature_fahrenheit,
                notes=f"{summary}. {request.notes}" if request.notes else summary,
            ))
            await uow.commit()

        logger.info(f"[bottle] container {container.id}: {summary}")
        return OperationResult(container=updated, transactions=[transaction])

    # =========================================================================
    # CHANGE ACCOUNT
    # =========================================================================

    @_operation("change_account")
    async def change_account(self, owner_id: uuid.UUID, **params: Any) -> OperationResult:
        """Reclassify a container's account. Same account is a no-op."""
        request = parse_request(ChangeAccountRequest, **params)

        async with self._uow_factory() as uow:
            container = (await uow.containers.get_for_update(owner_id, [request.container_id]))[request.container_id]
            if container.account == request.new_account:
                return OperationResult(container=container, transactions=[])

            updated = await uow.containers.update(container.id, owner_id, {"account": request.new_account})
            transaction = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=TransactionType.CHANGE_ACCOUNT,
                container_id=container.id,
                product_id=container.product_id,
                proof=container.proof,
                temperature_fahrenheit=container.temperature_fahrenheit,
                notes=f"account: {container.account.value} -> {request.new_account.value}",
            ))
            await uow.commit()

        logger.info(f"[change_account] container {container.id}: {container.account.value} -> {request.new_account.value}")
        return OperationResult(container=updated, transactions=[transaction])

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @_operation("create")
    async def create_container(self, owner_id: uuid.UUID, **params: Any) -> OperationResult:
        """
        Create a container from a kind.

        Weight is taken from net_weight, or from gross_weight minus tare
        (container tare first, then kind tare).
        """
        request = parse_request(CreateContainerRequest, **params)

        async with self._uow_factory() as uow:
            kind = await uow.kinds.get(request.kind_id, owner_id)
            if kind.capacity_gallons is None:
                raise ValidationError(
                    f"Container kind {kind.name} has no capacity",
                    code="VAL_MISSING_FIELD",
                    details={"kind_id": kind.id},
                )

            net_weight = request.net_weight
            if net_weight is None and request.gross_weight is not None:
                tare = request.tare_weight if request.tare_weight is not None else kind.tare_weight
                tare = tare or ZERO
                net_weight = request.gross_weight - tare if request.gross_weight > tare else ZERO
            net_weight = net_weight or ZERO

            if net_weight > 0 and request.proof is None:
                raise ValidationError(
                    "A container with spirit in it needs a proof",
                    code="VAL_MISSING_FIELD",
                    details={"net_weight": net_weight},
                )

            status = derive_status(net_weight, request.status)
            container = await uow.containers.create(Container(
                owner_id=owner_id,
                kind_id=kind.id,
                name=request.name,
                account=request.account,
                net_weight=net_weight,
                tare_weight=request.tare_weight,
                proof=request.proof,
                temperature_fahrenheit=request.temperature_fahrenheit,
                status=status,
                product_id=request.product_id,
                fill_date=request.fill_date,
                notes=request.notes,
            ))

            wine_gallons, proof_gallons = weight_to_gallons(container.working_proof, net_weight)
            transaction = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=(
                    TransactionType.CREATE_EMPTY_CONTAINER
                    if status == ContainerStatus.EMPTY
                    else TransactionType.CREATE_FILLED_CONTAINER
                ),
                container_id=container.id,
                product_id=container.product_id,
                proof=container.proof,
                volume_gallons=wine_gallons,
                proof_gallons=proof_gallons,
                temperature_fahrenheit=container.temperature_fahrenheit,
                notes=f"Created {kind.name} '{container.name or container.id}' ({status.value})",
            ))
            await uow.commit()

        logger.info(
            f"[create] container {container.id} ({kind.name}) {status.value}: "
            f"{net_weight} lbs, {wine_gallons:.2f} WG, {proof_gallons:.2f} PG"
        )
        return OperationResult(container=container, transactions=[transaction])

    @_operation("delete")
    async def delete_container(self, owner_id: uuid.UUID, container_id: uuid.UUID) -> DeleteResult:
        """Record the final state in the ledger, then remove the container."""
        async with self._uow_factory() as uow:
            container = (await uow.containers.get_for_update(owner_id, [container_id]))[container_id]
            try:
                kind_name = (await uow.kinds.get(container.kind_id, owner_id)).name
            except NotFoundError:
                kind_name = str(container.kind_id)

            wine_gallons, proof_gallons = weight_to_gallons(container.working_proof, container.net_weight)
            transaction = await uow.ledger.append(Transaction(
                owner_id=owner_id,
                transaction_type=(
                    TransactionType.DELETE_EMPTY_CONTAINER
                    if container.is_empty
                    else TransactionType.DELETE_FILLED_CONTAINER
                ),
                container_id=container.id,
                product_id=container.product_id,
                proof=container.proof,
                volume_gallons=-wine_gallons,
                proof_gallons=-proof_gallons,
                temperature_fahrenheit=container.temperature_fahrenheit,
                notes=(
                    f"Deleted container '{container.name or container.id}' "
                    f"(product: {format_value(container.product_id)}, type: {kind_name}) "
                    f"holding {container.net_weight} lbs at {format_value(container.proof)} proof"
                ),
            ))
            await uow.containers.delete(container.id, owner_id)
            await uow.commit()

        logger.info(f"[delete] container {container.id} ({container.status.value}), {wine_gallons:.2f} WG written off")
        return DeleteResult(container=container, transaction=transaction)

    @_operation("edit")
    async def edit_container(
        self,
        owner_id: uuid.UUID,
        container_id: uuid.UUID,
        **changes: Any,
    ) -> EditResult:
        """
        Apply field changes and audit them.

        A ledger entry is written only when a tracked field actually
        changes; its notes list each change as "field: old -> new".
        """
        request = parse_request(ContainerChanges, **changes)
        requested = {field: getattr(request, field) for field in request.model_fields_set}

        if "net_weight" in requested and requested["net_weight"] is None:
            raise ValidationError(
                "net_weight cannot be cleared; set it to 0 to empty a container",
                code="VAL_MISSING_FIELD",
                details={"container_id": container_id},
            )

        async with self._uow_factory() as uow:
            old = (await uow.containers.get_for_update(owner_id, [container_id]))[container_id]

            new_weight = requested.get("net_weight", old.net_weight)
            requested_status = requested.get("status") or old.status
            if requested.get("status") == ContainerStatus.EMPTY and new_weight > 0:
                raise ValidationError(
                    f"Container cannot be EMPTY while holding {new_weight} lbs",
                    code="VAL_INVALID_STATE",
                    details={"container_id": container_id, "net_weight": new_weight},
                )
            new_status = derive_status(new_weight, requested_status)
            new_proof = requested["proof"] if "proof" in requested else old.proof
            if new_weight > 0 and new_proof is None:
                raise ValidationError(
                    f"Container {container_id} would hold {new_weight} lbs with no proof",
                    code="VAL_MISSING_FIELD",
                    details={"container_id": container_id, "net_weight": new_weight},
                )

            changed = diff_tracked_fields(old, requested)
            container = await uow.containers.update(old.id, owner_id, {
                **requested,
                "net_weight": new_weight,
                "status": new_status,
            })

            transaction = None
            if changed:
                volume = proof_gallons = ZERO
                if old.proof is not None and container.proof is not None:
                    old_wine_gallons, old_proof_gallons = weight_to_gallons(old.proof, old.net_weight)
                    new_wine_gallons, new_proof_gallons = weight_to_gallons(container.proof, container.net_weight)
                    volume = new_wine_gallons - old_wine_gallons
                    proof_gallons = new_proof_gallons - old_proof_gallons

                transaction = await uow.ledger.append(Transaction(
                    owner_id=owner_id,
                    transaction_type=edit_transaction_type(old.is_empty, container.is_empty),
                    container_id=container.id,
                    product_id=container.product_id,
                    proof=container.proof,
                    volume_gallons=volume,
                    proof_gallons=proof_gallons,
                    temperature_fahrenheit=container.temperature_fahrenheit,
                    notes=build_change_notes(changed),
                ))
            await uow.commit()

        if transaction:
            logger.info(f"[edit] container {container.id} {transaction.transaction_type.value}: {transaction.notes}")
        else:
            logger.info(f"[edit] container {container.id}: no tracked field changed, no ledger entry")
        return EditResult(
            container=container,
            transaction=transaction,
            changed_fields=[c.field for c in changed],
        )

"""
Stillhouse Ledger - Operation Requests & Results

One explicit struct of optional fields per operation. The engine never
works from an untyped dict; edit auditing diffs ContainerChanges field by
field using pydantic's fields-set tracking.
"""

import uuid
from enum import Enum
from typing import Any, Optional, TypeVar

import pydantic
from pydantic import BaseModel, Field

from stillhouse.core.errors import ValidationError
from stillhouse.core.types import NonNegativeQuantity, Proof, Quantity, UtcDatetime
from stillhouse.models.container import AccountType, Container, ContainerStatus
from stillhouse.models.transaction import Transaction


RequestT = TypeVar("RequestT", bound=BaseModel)


def parse_request(model: type[RequestT], **data: Any) -> RequestT:
    """
    Build a request struct, converting pydantic failures to ValidationError.

    Missing fields map to VAL_MISSING_FIELD, range violations to
    VAL_OUT_OF_RANGE, everything else to VAL_INVALID_NUMBER.
    """
    try:
        return model(**data)
    except pydantic.ValidationError as e:
        errors = e.errors()
        kinds = {err["type"] for err in errors}
        if "missing" in kinds:
            code = "VAL_MISSING_FIELD"
        elif kinds & {"out_of_range", "greater_than", "greater_than_equal", "less_than_equal"}:
            code = "VAL_OUT_OF_RANGE"
        else:
            code = "VAL_INVALID_NUMBER"
        details = {".".join(str(p) for p in err["loc"]): err["msg"] for err in errors}
        raise ValidationError(
            f"Invalid {model.__name__}: {'; '.join(f'{k}: {v}' for k, v in details.items())}",
            code=code,
            details=details,
        ) from e


# =============================================================================
# LIFECYCLE
# =============================================================================

class CreateContainerRequest(BaseModel):
    """Create a container. Weight may be given as net or gross (gross - tare)."""
    kind_id: uuid.UUID
    name: Optional[str] = None
    account: AccountType = AccountType.STORAGE
    status: ContainerStatus = ContainerStatus.EMPTY

    proof: Optional[Proof] = None
    net_weight: Optional[NonNegativeQuantity] = None
    gross_weight: Optional[NonNegativeQuantity] = None
    tare_weight: Optional[NonNegativeQuantity] = None
    temperature_fahrenheit: Optional[Quantity] = None

    product_id: Optional[uuid.UUID] = None
    fill_date: Optional[UtcDatetime] = None
    notes: Optional[str] = None


class ContainerChanges(BaseModel):
    """
    Field changes for an edit. Only fields explicitly set are applied;
    a field set to None clears it.
    """
    name: Optional[str] = None
    proof: Optional[Proof] = None
    product_id: Optional[uuid.UUID] = None
    account: Optional[AccountType] = None
    tare_weight: Optional[NonNegativeQuantity] = None
    net_weight: Optional[NonNegativeQuantity] = None
    temperature_fahrenheit: Optional[Quantity] = None
    status: Optional[ContainerStatus] = None
    fill_date: Optional[UtcDatetime] = None
    notes: Optional[str] = None


# Fields whose changes are audited. notes and fill_date are bookkeeping only.
TRACKED_FIELDS = (
    "name",
    "proof",
    "product_id",
    "account",
    "tare_weight",
    "net_weight",
    "temperature_fahrenheit",
)


# =============================================================================
# PHYSICAL OPERATIONS
# =============================================================================

class TransferRequest(BaseModel):
    """Move spirit from one container to another."""
    source_id: uuid.UUID
    destination_id: uuid.UUID
    weight_amount_lbs: NonNegativeQuantity
    wine_gallons_amount: Optional[NonNegativeQuantity] = None  # derived from weight if absent
    proof: Optional[Proof] = None  # source proof if absent
    notes: Optional[str] = None


class ProofDownRequest(BaseModel):
    """Dilute a container with water to a lower proof."""
    container_id: uuid.UUID
    target_proof: Proof
    notes: Optional[str] = None


class AdjustMethod(str, Enum):
    ADD = "add"
    REMOVE = "remove"


class AdjustRequest(BaseModel):
    """Add or remove spirit outside a transfer (samples, top-ups, spills)."""
    container_id: uuid.UUID
    method: AdjustMethod
    weight_amount_lbs: NonNegativeQuantity
    wine_gallons_amount: Optional[NonNegativeQuantity] = None  # derived from weight if absent
    notes: Optional[str] = None


class RemainderAction(str, Enum):
    """What happened to the spirit left after a bottling run."""
    KEEP = "keep"
    EMPTY = "empty"
    LOSS = "loss"
    GAIN = "gain"


class BottleRequest(BaseModel):
    """Bottle from a container; the remainder is weighed, not derived."""
    container_id: uuid.UUID
    bottle_size_liters: NonNegativeQuantity
    number_of_bottles: int = Field(..., gt=0)
    remainder_action: RemainderAction
    remainder_weight_lbs: NonNegativeQuantity
    notes: Optional[str] = None


class ChangeAccountRequest(BaseModel):
    container_id: uuid.UUID
    new_account: AccountType


# =============================================================================
# RESULTS
# =============================================================================

class OperationResult(BaseModel):
    """Single-container operation outcome."""
    container: Container
    transactions: list[Transaction] = []


class TransferResult(BaseModel):
    source: Container
    destination: Container
    transactions: list[Transaction]


class EditResult(BaseModel):
    container: Container
    transaction: Optional[Transaction] = None  # None when no tracked field changed
    changed_fields: list[str] = []


class DeleteResult(BaseModel):
    container: Container  # final state before removal
    transaction: Transaction

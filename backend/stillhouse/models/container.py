"""
Stillhouse Ledger - Container Model

One physical vessel (barrel, tank, tote) and the kind template it is built
from. Quantities live here; history lives in the ledger.

INVARIANT:
    net_weight == 0  ->  status == EMPTY   (unless operator-set)
    net_weight  > 0  ->  status != EMPTY
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from stillhouse.core.types import NonNegativeQuantity, Proof, Quantity, UtcDatetime, ZERO, utcnow


class ContainerStatus(str, Enum):
    """Lifecycle status of a container."""
    EMPTY = "EMPTY"
    FILLED = "FILLED"
    IN_USE = "IN_USE"
    MAINTENANCE = "MAINTENANCE"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"
    DAMAGED = "DAMAGED"


# Operator-set statuses are never overridden by quantity changes
OPERATOR_STATUSES = frozenset({
    ContainerStatus.MAINTENANCE,
    ContainerStatus.OUT_OF_SERVICE,
    ContainerStatus.DAMAGED,
})


class AccountType(str, Enum):
    """Regulatory account the spirit is held in."""
    STORAGE = "storage"
    PRODUCTION = "production"
    BOTTLING = "bottling"
    SAMPLING = "sampling"


class ContainerType(str, Enum):
    """Physical vessel type of a container kind."""
    WOODEN_BARREL = "WOODEN_BARREL"
    METAL_DRUM = "METAL_DRUM"
    SQUARE_TANK = "SQUARE_TANK"
    TOTE = "TOTE"
    FIVE_GALLON_TOTE = "FIVE_GALLON_TOTE"
    STILL = "STILL"
    FERMENTER = "FERMENTER"


def derive_status(
    net_weight: Decimal,
    override: Optional[ContainerStatus] = None,
) -> ContainerStatus:
    """
    The one place container status is computed from quantity.

    Operator statuses pass through untouched. Otherwise an empty vessel
    is EMPTY, and a vessel with spirit keeps IN_USE or becomes FILLED.
    """
    if override in OPERATOR_STATUSES:
        return override
    if net_weight <= 0:
        return ContainerStatus.EMPTY
    if override == ContainerStatus.IN_USE:
        return ContainerStatus.IN_USE
    return ContainerStatus.FILLED


class ContainerKind(BaseModel):
    """Template defining a vessel's capacity and tare weight."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    owner_id: uuid.UUID
    name: str
    container_type: ContainerType
    capacity_gallons: Optional[NonNegativeQuantity] = None  # wine gallons
    tare_weight: Optional[NonNegativeQuantity] = None  # lbs
    description: Optional[str] = None


class Container(BaseModel):
    """Current physical state of one vessel."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    owner_id: uuid.UUID

    # Classification
    kind_id: uuid.UUID
    name: Optional[str] = None
    account: AccountType = AccountType.STORAGE

    # Physical state
    net_weight: NonNegativeQuantity = ZERO  # lbs
    tare_weight: Optional[NonNegativeQuantity] = None  # lbs, overrides kind tare
    proof: Optional[Proof] = None
    temperature_fahrenheit: Optional[Quantity] = None
    status: ContainerStatus = ContainerStatus.EMPTY

    # What it holds
    product_id: Optional[uuid.UUID] = None

    fill_date: Optional[UtcDatetime] = None
    notes: Optional[str] = None

    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)

    @property
    def is_empty(self) -> bool:
        return self.status == ContainerStatus.EMPTY

    @property
    def working_proof(self) -> Decimal:
        """Proof used for arithmetic. An unknown proof counts as 0."""
        return self.proof if self.proof is not None else ZERO

"""
Stillhouse Ledger - Transaction Model

Append-only ledger entries. A Transaction is never updated or deleted once
written; corrections are new entries.

Field semantics:
    proof           proof AT THE TIME of the event (not a delta)
    volume_gallons  signed wine-gallon delta for the container
    proof_gallons   signed proof-gallon delta for the container
"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from stillhouse.core.types import Proof, Quantity, UtcDatetime, ZERO


class TransactionType(str, Enum):
    """Closed set of ledger entry types."""
    # Lifecycle
    CREATE_EMPTY_CONTAINER = "CREATE_EMPTY_CONTAINER"
    CREATE_FILLED_CONTAINER = "CREATE_FILLED_CONTAINER"
    DELETE_EMPTY_CONTAINER = "DELETE_EMPTY_CONTAINER"
    DELETE_FILLED_CONTAINER = "DELETE_FILLED_CONTAINER"

    # Edits
    EDIT_EMPTY_DATA_CORRECTION = "EDIT_EMPTY_DATA_CORRECTION"
    EDIT_FILL_DATA_CORRECTION = "EDIT_FILL_DATA_CORRECTION"
    EDIT_FILL_FROM_EMPTY = "EDIT_FILL_FROM_EMPTY"
    EDIT_EMPTY_FROM_FILLED = "EDIT_EMPTY_FROM_FILLED"
    REFILL_CONTAINER = "REFILL_CONTAINER"

    # Movement
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    PRODUCTION = "PRODUCTION"
    DISTILLATION_FINISH = "DISTILLATION_FINISH"

    # Adjustments
    SAMPLE_ADJUST = "SAMPLE_ADJUST"
    ADJUST_CONTAINER_ADD = "ADJUST_CONTAINER_ADD"
    ADJUST_CONTAINER_REMOVE = "ADJUST_CONTAINER_REMOVE"
    PROOF_DOWN = "PROOF_DOWN"

    # Bottling
    BOTTLE_PARTIAL = "BOTTLE_PARTIAL"
    BOTTLE_KEEP = "BOTTLE_KEEP"
    BOTTLE_EMPTY = "BOTTLE_EMPTY"
    BOTTLING_GAIN = "BOTTLING_GAIN"
    BOTTLING_LOSS = "BOTTLING_LOSS"

    # Master data
    DELETE_PRODUCT = "DELETE_PRODUCT"
    DELETE_PRODUCTION_BATCH = "DELETE_PRODUCTION_BATCH"
    CHANGE_ACCOUNT = "CHANGE_ACCOUNT"


class Transaction(BaseModel):
    """One immutable ledger entry."""
    model_config = ConfigDict(frozen=True)

    id: Optional[uuid.UUID] = None  # assigned by the ledger on append
    owner_id: uuid.UUID
    transaction_type: TransactionType

    container_id: Optional[uuid.UUID] = None
    product_id: Optional[uuid.UUID] = None

    proof: Optional[Proof] = None
    volume_gallons: Quantity = ZERO
    proof_gallons: Quantity = ZERO
    temperature_fahrenheit: Optional[Quantity] = None
    notes: Optional[str] = None

    created_at: Optional[UtcDatetime] = None  # assigned by the ledger on append


class TransactionFilter(BaseModel):
    """Ledger query filter."""
    transaction_type: Optional[TransactionType] = None
    container_id: Optional[uuid.UUID] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


class TransactionTypeCount(BaseModel):
    transaction_type: TransactionType
    count: int


class TransactionSummary(BaseModel):
    """Aggregate view over a slice of the ledger."""
    total_transactions: int
    by_type: list[TransactionTypeCount]
    total_volume_gallons: Quantity
    total_proof_gallons: Quantity
    recent: list[Transaction]


class ReconciliationReport(BaseModel):
    """Ledger history vs. current container state, in proof gallons."""
    container_id: uuid.UUID
    transaction_count: int
    ledger_proof_gallons: Quantity
    container_proof_gallons: Quantity
    variance: Quantity
    tolerance: Quantity
    reconciled: bool

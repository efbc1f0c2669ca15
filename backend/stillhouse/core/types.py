"""
Stillhouse Ledger - Canonical Quantity Types
=============================================

RULE: No floats allowed for quantities.

Weight:        Decimal pounds
Volume:        Decimal wine gallons / proof gallons
Proof:         Decimal on the 0-200 scale
Temperature:   Decimal degrees Fahrenheit
Timestamps:    timezone-aware UTC

Stored as NUMERIC in DB, serialized as string in JSON.

This module is the SINGLE SOURCE OF TRUTH for numeric types in the ledger.
All models and services MUST import from here.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BeforeValidator, PlainSerializer, WithJsonSchema
from pydantic_core import PydanticCustomError


MIN_PROOF = Decimal("0")
MAX_PROOF = Decimal("200")
ZERO = Decimal("0")


def as_decimal(v: Any) -> Decimal:
    """
    Convert to Decimal.

    Accepts:
        - Decimal: Pass through
        - str: Parse as Decimal
        - int: Convert to Decimal
        - float, bool: REJECTED (raises ValueError)

    NaN and infinities are rejected as well.
    """
    if isinstance(v, bool) or isinstance(v, float):
        raise ValueError(
            "Float not allowed for quantity. Use Decimal or string. "
            f"Got: {v!r}"
        )

    if isinstance(v, Decimal):
        dec = v
    elif isinstance(v, (str, int)):
        try:
            dec = Decimal(str(v).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid quantity: {v!r}")
    else:
        raise ValueError(f"Invalid quantity type: {type(v).__name__}")

    if not dec.is_finite():
        raise ValueError(f"Quantity must be finite, got: {v!r}")
    return dec


def _serialize_decimal(v: Decimal) -> str:
    """Serialize quantity as string (prevents JSON float issues)."""
    return str(v)


# =============================================================================
# QUANTITY (any sign)
# =============================================================================

Quantity = Annotated[
    Decimal,
    BeforeValidator(as_decimal),
    PlainSerializer(_serialize_decimal),
    WithJsonSchema({"type": "string", "description": "Decimal quantity as string"}),
]


# =============================================================================
# NON-NEGATIVE QUANTITY (weights, amounts, capacities)
# =============================================================================

def _validate_non_negative(v: Any) -> Decimal:
    dec = as_decimal(v)
    if dec < 0:
        raise PydanticCustomError("out_of_range", "Quantity must be >= 0, got: {value}", {"value": str(dec)})
    return dec


NonNegativeQuantity = Annotated[
    Decimal,
    BeforeValidator(_validate_non_negative),
    PlainSerializer(_serialize_decimal),
    WithJsonSchema({"type": "string", "description": "Non-negative decimal quantity as string"}),
]


# =============================================================================
# PROOF (0-200)
# =============================================================================

def _validate_proof(v: Any) -> Decimal:
    dec = as_decimal(v)
    if dec < MIN_PROOF or dec > MAX_PROOF:
        raise PydanticCustomError("out_of_range", "Proof must be 0-200, got: {value}", {"value": str(dec)})
    return dec


Proof = Annotated[
    Decimal,
    BeforeValidator(_validate_proof),
    PlainSerializer(_serialize_decimal),
    WithJsonSchema({"type": "string", "description": "Proof 0-200 as string"}),
]


# =============================================================================
# TIMESTAMPS
# =============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(v: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


__all__ = [
    "as_decimal",
    "Quantity",
    "NonNegativeQuantity",
    "Proof",
    "MIN_PROOF",
    "MAX_PROOF",
    "ZERO",
    "utcnow",
    "as_utc",
    "UtcDatetime",
]

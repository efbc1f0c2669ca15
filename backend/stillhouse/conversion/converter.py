"""
Stillhouse Ledger - Quantity Converter
======================================

Weight <-> wine gallons <-> proof gallons at a given proof.

RULE: Every conversion in the ledger goes through these functions.
      There is exactly one implementation of each direction, all routed
      through tables.density(), so round trips agree to 0.01.

    wine_gallons  = net_weight_lbs / density(proof)
    proof_gallons = wine_gallons * proof / 100
    net_weight    = wine_gallons * density(proof)
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel

from stillhouse.conversion.tables import density, true_proof
from stillhouse.core.types import Quantity, ZERO, as_decimal


HUNDRED = Decimal("100")
GALLONS_PER_LITER = Decimal("0.264172")
CENTS = Decimal("0.01")


class Gallons(NamedTuple):
    """Wine gallons and proof gallons for one measurement."""
    wine_gallons: Decimal
    proof_gallons: Decimal


# =============================================================================
# CORE CONVERSIONS
# =============================================================================

def proof_gallons_for(proof: Any, wine_gallons: Any) -> Decimal:
    """Proof gallons contained in wine_gallons of spirit at proof."""
    return as_decimal(wine_gallons) * as_decimal(proof) / HUNDRED


def weight_to_gallons(proof: Any, net_weight_lbs: Any) -> Gallons:
    """Net weight in pounds -> (wine gallons, proof gallons)."""
    prf = as_decimal(proof)
    weight = as_decimal(net_weight_lbs)
    wine_gallons = weight / density(prf)
    return Gallons(wine_gallons, proof_gallons_for(prf, wine_gallons))


def gallons_to_weight(proof: Any, wine_gallons: Any) -> Decimal:
    """Wine gallons -> net weight in pounds."""
    return as_decimal(wine_gallons) * density(proof)


def proof_gallons_to_weight(proof: Any, proof_gallons: Any) -> Decimal:
    """Proof gallons -> net weight in pounds. Zero proof holds no proof gallons, so returns 0."""
    prf = as_decimal(proof)
    if prf == 0:
        return ZERO
    wine_gallons = as_decimal(proof_gallons) / (prf / HUNDRED)
    return gallons_to_weight(prf, wine_gallons)


def bottled_volume_gallons(bottle_size_liters: Any, count: Any) -> Decimal:
    """Wine gallons filled into count bottles of bottle_size_liters."""
    return as_decimal(bottle_size_liters) * as_decimal(count) * GALLONS_PER_LITER


def proof_gallons_ttb(wine_gallons: Any, observed_proof: Any, temperature_f: Any) -> Decimal:
    """Proof gallons using the temperature-corrected (true) proof."""
    return proof_gallons_for(true_proof(observed_proof, temperature_f), wine_gallons)


# =============================================================================
# DERIVED QUANTITIES (gauging sheet)
# =============================================================================

class DerivedQuantities(BaseModel):
    """Everything a gauger reads off one measurement, rounded to hundredths."""
    net_weight_lbs: Quantity
    wine_gallons: Quantity
    proof_gallons: Quantity
    spirit_density: Quantity
    gross_weight_lbs: Quantity


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _or_zero(value: Optional[Any]) -> Decimal:
    return ZERO if value is None else as_decimal(value)


def derive_from_gross_weight(tare_weight: Any, gross_weight: Any, observed_proof: Any) -> DerivedQuantities:
    """
    Scale reading -> quantities.

    Proof is taken as already temperature corrected (digital densitometer),
    so no TTB correction is applied here. Gross below tare means empty.
    """
    tare = _or_zero(tare_weight)
    gross = _or_zero(gross_weight)
    prf = _or_zero(observed_proof)

    net = gross - tare if gross > tare else ZERO
    wine_gallons, proof_gallons = weight_to_gallons(prf, net)

    return DerivedQuantities(
        net_weight_lbs=_cents(net),
        wine_gallons=_cents(wine_gallons),
        proof_gallons=_cents(proof_gallons),
        spirit_density=_cents(density(prf)),
        gross_weight_lbs=_cents(gross),
    )


def derive_from_wine_gallons(
    wine_gallons: Any,
    observed_proof: Any,
    tare_weight: Any = None,
    temperature_f: Any = 60,
) -> DerivedQuantities:
    """Volume reading -> quantities, proof gallons at true proof."""
    wg = _or_zero(wine_gallons)
    prf = _or_zero(observed_proof)
    tare = _or_zero(tare_weight)

    net = gallons_to_weight(prf, wg)

    return DerivedQuantities(
        net_weight_lbs=_cents(net),
        wine_gallons=_cents(wg),
        proof_gallons=_cents(proof_gallons_ttb(wg, prf, temperature_f)),
        spirit_density=_cents(density(prf)),
        gross_weight_lbs=_cents(net + tare),
    )


def derive_from_proof_gallons(
    proof_gallons: Any,
    observed_proof: Any,
    tare_weight: Any = None,
    temperature_f: Any = 60,
) -> DerivedQuantities:
    """Proof-gallon figure -> quantities, working back through true proof."""
    pg = _or_zero(proof_gallons)
    prf = _or_zero(observed_proof)
    tare = _or_zero(tare_weight)

    wine_gallons = ZERO
    corrected = true_proof(prf, temperature_f)
    if prf > 0 and pg > 0 and corrected > 0:
        wine_gallons = pg / (corrected / HUNDRED)

    net = gallons_to_weight(prf, wine_gallons)

    return DerivedQuantities(
        net_weight_lbs=_cents(net),
        wine_gallons=_cents(wine_gallons),
        proof_gallons=_cents(pg),
        spirit_density=_cents(density(prf)),
        gross_weight_lbs=_cents(net + tare),
    )

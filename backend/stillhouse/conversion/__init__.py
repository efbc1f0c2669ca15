"""TTB density/temperature tables and the quantity converter built on them."""

from stillhouse.conversion.converter import (
    DerivedQuantities,
    Gallons,
    bottled_volume_gallons,
    derive_from_gross_weight,
    derive_from_proof_gallons,
    derive_from_wine_gallons,
    gallons_to_weight,
    proof_gallons_for,
    proof_gallons_to_weight,
    proof_gallons_ttb,
    weight_to_gallons,
)
from stillhouse.conversion.tables import density, temperature_correction, true_proof

__all__ = [
    "DerivedQuantities",
    "Gallons",
    "bottled_volume_gallons",
    "density",
    "derive_from_gross_weight",
    "derive_from_proof_gallons",
    "derive_from_wine_gallons",
    "gallons_to_weight",
    "proof_gallons_for",
    "proof_gallons_to_weight",
    "proof_gallons_ttb",
    "temperature_correction",
    "true_proof",
    "weight_to_gallons",
]

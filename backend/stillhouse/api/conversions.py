"""Gauging calculator: derive every quantity from one measurement."""
from enum import Enum
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from stillhouse.conversion import (
    DerivedQuantities,
    derive_from_gross_weight,
    derive_from_proof_gallons,
    derive_from_wine_gallons,
)
from stillhouse.core.types import NonNegativeQuantity, Proof, Quantity

router = APIRouter(prefix="/conversions", tags=["Conversions"])


class MeasurementMethod(str, Enum):
    GROSS_WEIGHT = "gross_weight"
    WINE_GALLONS = "wine_gallons"
    PROOF_GALLONS = "proof_gallons"


class GaugeRequest(BaseModel):
    method: MeasurementMethod
    value: NonNegativeQuantity
    proof: Proof
    tare_weight: Optional[NonNegativeQuantity] = None
    temperature_fahrenheit: Quantity = 60


@router.post("/gauge", response_model=DerivedQuantities)
async def gauge(payload: GaugeRequest):
    """Weight, wine gallons, proof gallons and density for one reading."""
    if payload.method == MeasurementMethod.GROSS_WEIGHT:
        return derive_from_gross_weight(payload.tare_weight, payload.value, payload.proof)
    if payload.method == MeasurementMethod.WINE_GALLONS:
        return derive_from_wine_gallons(
            payload.value, payload.proof, payload.tare_weight, payload.temperature_fahrenheit
        )
    return derive_from_proof_gallons(
        payload.value, payload.proof, payload.tare_weight, payload.temperature_fahrenheit
    )

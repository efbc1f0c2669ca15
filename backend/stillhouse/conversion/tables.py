"""
Stillhouse Ledger - TTB Conversion Tables
=========================================

Two static tables, no state:

1. Density (TTB Table 5 equivalent): pounds per wine gallon at 60°F,
   indexed by integer proof 0-200. Fractional proof is interpolated
   linearly between the neighbouring integer entries.

2. Temperature correction: signed delta added to an observed
   hydrometer proof to obtain true proof. Indexed by even °F in
   [60, 80] and proof in steps of 5 across [80, 170]. Readings off the
   grid get no correction. This is a known limitation, not a failure.

Spirit is lighter than water, so density never increases with proof.
"""

import logging
from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any

from stillhouse.core.types import MAX_PROOF, MIN_PROOF, as_decimal

logger = logging.getLogger(__name__)


DENSITY_WATER_LBS_PER_GALLON = Decimal("8.328")
DENSITY_ETHANOL_LBS_PER_GALLON = Decimal("6.58")


# =============================================================================
# DENSITY TABLE (lbs / wine gallon @ 60°F)
# =============================================================================

_DENSITY_TABLE_RAW = {
    0: "8.32198", 1: "8.32198", 2: "8.31574", 3: "8.30957", 4: "8.30350",
    5: "8.29742", 6: "8.29150", 7: "8.28551", 8: "8.27976", 9: "8.27401",
    10: "8.26835", 11: "8.26277", 12: "8.25736", 13: "8.25194", 14: "8.24670",
    15: "8.24153", 16: "8.23645", 17: "8.23137", 18: "8.22646", 19: "8.22155",
    20: "8.21663", 21: "8.21172", 22: "8.20689", 23: "8.20206", 24: "8.19731",
    25: "8.19265", 26: "8.18807", 27: "8.18349", 28: "8.17899", 29: "8.17457",
    30: "8.17016", 31: "8.16575", 32: "8.16133", 33: "8.15700", 34: "8.15275",
    35: "8.14851", 36: "8.14434", 37: "8.14018", 38: "8.13601", 39: "8.13193",
    40: "8.12785", 41: "8.12369", 42: "8.11936", 43: "8.11519", 44: "8.11095",
    45: "8.10670", 46: "8.10245", 47: "8.09812", 48: "8.09379", 49: "8.08946",
    50: "8.08505", 51: "8.08063", 52: "8.07622", 53: "8.07172", 54: "8.06722",
    55: "8.06264", 56: "8.05806", 57: "8.05340", 58: "8.04873", 59: "8.04399",
    60: "8.03924", 61: "8.03433", 62: "8.02950", 63: "8.02450", 64: "8.01934",
    65: "8.01417", 66: "8.00884", 67: "8.00351", 68: "7.99810", 69: "7.99260",
    70: "7.98702", 71: "7.98136", 72: "7.97553", 73: "7.96970", 74: "7.96370",
    75: "7.95771", 76: "7.95146", 77: "7.94530", 78: "7.93897", 79: "7.93264",
    80: "7.92614", 81: "7.91965", 82: "7.91298", 83: "7.90632", 84: "7.89949",
    85: "7.89266", 86: "7.88575", 87: "7.87876", 88: "7.87168", 89: "7.86443",
    90: "7.85719", 91: "7.84986", 92: "7.84244", 93: "7.83495", 94: "7.82737",
    95: "7.81971", 96: "7.81196", 97: "7.80413", 98: "7.79622", 99: "7.78823",
    100: "7.78007", 101: "7.77198", 102: "7.76381", 103: "7.75556", 104: "7.74723",
    105: "7.73884", 106: "7.73038", 107: "7.72187", 108: "7.71330", 109: "7.70468",
    110: "7.69603", 111: "7.68733", 112: "7.67856", 113: "7.66974", 114: "7.66086",
    115: "7.65192", 116: "7.64293", 117: "7.63388", 118: "7.62478", 119: "7.61563",
    120: "7.60642", 121: "7.59716", 122: "7.58783", 123: "7.57844", 124: "7.56900",
    125: "7.55949", 126: "7.54994", 127: "7.54033", 128: "7.53068", 129: "7.52098",
    130: "7.51123", 131: "7.50144", 132: "7.49160", 133: "7.48171", 134: "7.47176",
    135: "7.46177", 136: "7.45172", 137: "7.44161", 138: "7.43145", 139: "7.42123",
    140: "7.41096", 141: "7.40063", 142: "7.39025", 143: "7.37980", 144: "7.36931",
    145: "7.35875", 146: "7.34813", 147: "7.33745", 148: "7.32670", 149: "7.31590",
    150: "7.30502", 151: "7.29408", 152: "7.28307", 153: "7.27200", 154: "7.26087",
    155: "7.24966", 156: "7.23839", 157: "7.22705", 158: "7.21563", 159: "7.20415",
    160: "7.19259", 161: "7.18097", 162: "7.16930", 163: "7.15756", 164: "7.14575",
    165: "7.13386", 166: "7.12188", 167: "7.10981", 168: "7.09763", 169: "7.08533",
    170: "7.07292", 171: "7.06041", 172: "7.04783", 173: "7.03516", 174: "7.02239",
    175: "7.00949", 176: "6.99646", 177: "6.98326", 178: "6.96990", 179: "6.95634",
    180: "6.94258", 181: "6.92867", 182: "6.91467", 183: "6.90053", 184: "6.88621",
    185: "6.87168", 186: "6.85688", 187: "6.84179", 188: "6.82637", 189: "6.81056",
    190: "6.79434", 191: "6.77768", 192: "6.76058", 193: "6.74306", 194: "6.72514",
    195: "6.70682", 196: "6.68812", 197: "6.66904", 198: "6.64960", 199: "6.62982",
    200: "6.60970",
}

DENSITY_LBS_PER_GALLON: dict[int, Decimal] = {
    proof: Decimal(value) for proof, value in _DENSITY_TABLE_RAW.items()
}


# =============================================================================
# TEMPERATURE CORRECTION TABLE
# =============================================================================
# Temperature (°F) -> observed proof -> correction added to observed proof.
# Each 2°F step shifts the whole row by 0.1; each 5 proof step adds 0.1.

TEMPERATURE_GRID_F = tuple(range(60, 81, 2))
PROOF_GRID = tuple(range(80, 171, 5))

TTB_TEMPERATURE_CORRECTIONS: dict[int, dict[int, Decimal]] = {
    temp: {
        proof: (Decimal("0.2") - Decimal("0.1") * row + Decimal("0.1") * col).quantize(Decimal("0.1"))
        for col, proof in enumerate(PROOF_GRID)
    }
    for row, temp in enumerate(TEMPERATURE_GRID_F)
}


def _round_to_step(value: Decimal, step: int) -> int:
    """Round to the nearest multiple of step, half away from zero like the hand tables."""
    scaled = value / step
    whole = int(scaled.to_integral_value(rounding=ROUND_HALF_UP))
    return whole * step


def clamp_proof(proof: Any) -> Decimal:
    """Clamp proof into [0, 200]."""
    value = as_decimal(proof)
    if value < MIN_PROOF or value > MAX_PROOF:
        logger.debug(f"Proof {value} outside table range, clamping")
        return min(max(value, MIN_PROOF), MAX_PROOF)
    return value


def _blend_density(proof: Decimal) -> Decimal:
    """Volumetric ethanol/water blend. Only reached for proofs the table cannot bracket."""
    ethanol_fraction = proof / MAX_PROOF
    water_fraction = 1 - ethanol_fraction
    return ethanol_fraction * DENSITY_ETHANOL_LBS_PER_GALLON + water_fraction * DENSITY_WATER_LBS_PER_GALLON


def density(proof: Any) -> Decimal:
    """
    Pounds per wine gallon for a spirit at the given proof.

    Exact integer proofs return the tabulated value; fractional proofs
    interpolate between floor and ceil.
    """
    value = clamp_proof(proof)

    if value == value.to_integral_value():
        tabulated = DENSITY_LBS_PER_GALLON.get(int(value))
        if tabulated is not None:
            return tabulated

    lower = int(value.to_integral_value(rounding=ROUND_FLOOR))
    upper = int(value.to_integral_value(rounding=ROUND_CEILING))
    lower_density = DENSITY_LBS_PER_GALLON.get(lower)
    upper_density = DENSITY_LBS_PER_GALLON.get(upper)

    if lower_density is None or upper_density is None:
        return _blend_density(value)

    weight = value - lower
    return lower_density + (upper_density - lower_density) * weight


def temperature_correction(temperature_f: Any, observed_proof: Any) -> Decimal:
    """
    TTB correction for a hydrometer reading.

    Temperature rounds to the nearest even °F, proof to the nearest 5.
    Returns 0 when either lands outside the table.
    """
    rounded_temp = _round_to_step(as_decimal(temperature_f), 2)
    rounded_proof = _round_to_step(as_decimal(observed_proof), 5)

    row = TTB_TEMPERATURE_CORRECTIONS.get(rounded_temp)
    if row is None:
        return Decimal("0")
    return row.get(rounded_proof, Decimal("0"))


def true_proof(observed_proof: Any, temperature_f: Any) -> Decimal:
    """Observed proof plus its temperature correction."""
    return as_decimal(observed_proof) + temperature_correction(temperature_f, observed_proof)

"""
Carbon footprint arithmetic for batches.

The canonical unit is kilograms of CO2e. Template footprints are kg per
unit, batch totals are kg, the ledger receives whole kg. Anything expressed
in tonnes must be converted explicitly with `to_kg`.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Union

from app.core.errors import ValidationError
from app.db.schema import FuelType

Number = Union[int, float]

KG_PER_TONNE = 1000


class CarbonUnit(str, Enum):
    KG = "kg"
    TONNE = "t"


def _require_finite(value: Number, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number.")
    if not math.isfinite(value):
        raise ValidationError(f"{field} must be a finite number.")
    return float(value)


def to_kg(value: Number, unit: CarbonUnit = CarbonUnit.KG) -> float:
    value = _require_finite(value, "Carbon footprint")
    if unit == CarbonUnit.TONNE:
        return value * KG_PER_TONNE
    return value


def kg_to_tonnes(value_kg: Number) -> float:
    return _require_finite(value_kg, "Carbon footprint") / KG_PER_TONNE


def calculate_batch_footprint(
    per_unit_footprint: Number,
    quantity: Number,
    override: Optional[Number] = None,
) -> float:
    """
    Total kg CO2e of a batch: per-unit footprint times quantity.

    A manual `override` replaces the computed value as-is; it is not checked
    against the template, so callers must already hold it in kg.
    """
    quantity = _require_finite(quantity, "Quantity")
    if quantity < 0:
        raise ValidationError("Quantity must not be negative.")

    if override is not None:
        override = _require_finite(override, "Carbon footprint override")
        if override < 0:
            raise ValidationError(
                "Carbon footprint override must not be negative.")
        return override

    per_unit = _require_finite(per_unit_footprint, "Carbon footprint per unit")
    if per_unit < 0:
        raise ValidationError("Carbon footprint per unit must not be negative.")

    # Decimal keeps 2.5 * 100 == 250 exact instead of accumulating float error
    total = Decimal(str(per_unit)) * Decimal(str(quantity))
    return float(total)


def to_ledger_units(footprint_kg: Number) -> int:
    """Whole kilograms, rounded half-up, as the contract stores them."""
    footprint_kg = _require_finite(footprint_kg, "Carbon footprint")
    return int(Decimal(str(footprint_kg)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# kg CO2e per litre burned (per kWh for electric)
FUEL_EMISSION_FACTORS = {
    FuelType.DIESEL: 2.68,
    FuelType.GASOLINE: 2.31,
    FuelType.ELECTRIC: 0.12,
    FuelType.LPG: 1.51,
    FuelType.CNG: 1.64,
}


def calculate_transport_footprint(
    distance_km: Number,
    consumption_per_100km: Number,
    fuel_type: FuelType,
) -> float:
    """kg CO2e of one leg: fuel burned over the distance times the fuel's factor."""
    distance_km = _require_finite(distance_km, "Distance")
    consumption = _require_finite(consumption_per_100km, "Fuel consumption")
    if distance_km < 0 or consumption < 0:
        raise ValidationError("Distance and fuel consumption must not be negative.")

    fuel_used = Decimal(str(distance_km)) * Decimal(str(consumption)) / 100
    return float(fuel_used * Decimal(str(FUEL_EMISSION_FACTORS[fuel_type])))

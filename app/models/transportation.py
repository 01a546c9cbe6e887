from typing import List, Optional
from uuid import UUID
from datetime import datetime
from sqlmodel import SQLModel, Field

from app.db.schema import VehicleType, FuelType
from app.services.carbon import CarbonUnit


class TransportationBase(SQLModel):
    vehicle_type: VehicleType
    fuel_type: FuelType
    distance: float = Field(ge=0, description="km", schema_extra={"examples": [420.0]})
    fuel_consumption: float = Field(
        ge=0,
        description="Litres (kWh for electric) per 100 km",
        schema_extra={"examples": [32.0]},
    )
    from_location: Optional[str] = Field(default=None, max_length=200)
    to_location: Optional[str] = Field(default=None, max_length=200)
    product_ids: List[str] = []


class TransportationCreate(TransportationBase):
    """
    A shipment leg to log. Without `carbon_footprint` the footprint is
    computed from distance, consumption and the fuel's emission factor.
    """
    carbon_footprint: Optional[float] = Field(default=None, ge=0)
    carbon_unit: CarbonUnit = CarbonUnit.KG


class TransportationRead(TransportationBase):
    id: UUID
    company_address: str
    carbon_footprint: float = Field(description="kg CO2e")
    created_at: datetime
    updated_at: datetime

from typing import Dict, List, Optional
from uuid import UUID
from datetime import datetime
from sqlmodel import SQLModel, Field


# ==========================================
# Plants
# ==========================================

class PlantBase(SQLModel):
    plant_name: str = Field(min_length=1, max_length=200)
    plant_code: str = Field(min_length=1, max_length=50)
    description: Optional[str] = None
    address: Optional[str] = None
    city: str
    state: Optional[str] = None
    country: str
    postal_code: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class PlantCreate(PlantBase):
    pass


class PlantRead(PlantBase):
    id: UUID
    company_address: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


# ==========================================
# Product Templates
# ==========================================

class ProductTemplateBase(SQLModel):
    template_name: str = Field(
        min_length=1,
        max_length=200,
        schema_extra={"examples": ["Hot-rolled steel coil 2mm"]},
    )
    description: Optional[str] = None
    category: str
    image_url: Optional[str] = None
    weight: float = Field(gt=0, description="kg per unit")
    dimensions: Optional[Dict[str, float]] = None
    materials: List[str] = []
    carbon_footprint_per_unit: float = Field(
        ge=0,
        description="kg CO2e per unit",
        schema_extra={"examples": [2.5]},
    )
    is_raw_material: bool = False


class ProductTemplateCreate(ProductTemplateBase):
    pass


class ProductTemplateUpdate(SQLModel):
    template_name: Optional[str] = Field(
        default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    image_url: Optional[str] = None
    weight: Optional[float] = Field(default=None, gt=0)
    dimensions: Optional[Dict[str, float]] = None
    materials: Optional[List[str]] = None
    carbon_footprint_per_unit: Optional[float] = Field(default=None, ge=0)
    is_raw_material: Optional[bool] = None


class ProductTemplateRead(ProductTemplateBase):
    id: UUID
    manufacturer_address: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

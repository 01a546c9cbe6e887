from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status

from app.core.dependencies import get_current_address, get_plant_service
from app.services.plant import PlantService
from app.models.catalog import PlantCreate, PlantRead

router = APIRouter()


@router.post("/", response_model=PlantRead, status_code=status.HTTP_201_CREATED)
def create_plant(
    data: PlantCreate,
    current_address: str = Depends(get_current_address),
    service: PlantService = Depends(get_plant_service)
):
    return service.create_plant(current_address, data)


@router.get("/", response_model=List[PlantRead])
def list_plants(
    current_address: str = Depends(get_current_address),
    service: PlantService = Depends(get_plant_service)
):
    return service.list_plants(current_address)


@router.get("/{plant_id}", response_model=PlantRead)
def get_plant(
    plant_id: UUID,
    current_address: str = Depends(get_current_address),
    service: PlantService = Depends(get_plant_service)
):
    return service.get_owned_plant(current_address, plant_id)


@router.post("/{plant_id}/deactivate", response_model=PlantRead)
def deactivate_plant(
    plant_id: UUID,
    current_address: str = Depends(get_current_address),
    service: PlantService = Depends(get_plant_service)
):
    """Existing batches keep pointing at the plant; new ones should not."""
    return service.deactivate_plant(current_address, plant_id)

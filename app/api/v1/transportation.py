from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from app.core.dependencies import get_current_address, get_transportation_service
from app.services.transportation import TransportationService
from app.models.transportation import TransportationCreate, TransportationRead

router = APIRouter()


@router.post("/", response_model=TransportationRead, status_code=status.HTTP_201_CREATED)
def log_transportation(
    data: TransportationCreate,
    background_tasks: BackgroundTasks,
    current_address: str = Depends(get_current_address),
    service: TransportationService = Depends(get_transportation_service)
):
    return service.create(current_address, data, background_tasks)


@router.get("/", response_model=List[TransportationRead])
def list_transportation(
    company_address: Optional[str] = Query(default=None, alias="companyAddress"),
    current_address: str = Depends(get_current_address),
    service: TransportationService = Depends(get_transportation_service)
):
    """Newest first. Defaults to the signed-in company."""
    return service.list_by_company(company_address or current_address)
